from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from resumezap.app.ingest.content import ExtractedMessage
from resumezap.app.messages import msg


REASON_SUCCESS = "success"
REASON_ACTIVITY_ONLY = "activity_only"
REASON_NO_MESSAGES = "no_messages"
REASON_NO_TEXT_MESSAGES = "no_text_messages"

WINDOWS: tuple[tuple[str, timedelta], ...] = (
    ("24h", timedelta(hours=24)),
    ("7d", timedelta(days=7)),
    ("30d", timedelta(days=30)),
)

MAX_LINE_CHARS = 700


@dataclass
class WindowSelection:
    reason: str
    window: str | None = None
    lines: list[str] = field(default_factory=list)
    text_count: int = 0
    message_count: int = 0

    @property
    def summarizable(self) -> bool:
        return self.reason in (REASON_SUCCESS, REASON_ACTIVITY_ONLY)

    @property
    def activity_only(self) -> bool:
        return self.reason == REASON_ACTIVITY_ONLY


def widest_window_start(now: datetime) -> datetime:
    return now - WINDOWS[-1][1]


class WindowSelector:
    """Pick the narrowest of 24h / 7d / 30d that holds text, rendered as prompt lines."""

    def __init__(self, utc_offset_hours: int = -3, max_line_chars: int = MAX_LINE_CHARS):
        self.display_tz = timezone(timedelta(hours=utc_offset_hours))
        self.max_line_chars = max_line_chars

    def select(
        self,
        messages: list[ExtractedMessage],
        now: datetime,
        raw_count: int | None = None,
    ) -> WindowSelection:
        if raw_count == 0 or (raw_count is None and not messages):
            return WindowSelection(reason=REASON_NO_MESSAGES)

        now_ms = int(now.timestamp() * 1000)
        ordered = sorted(messages, key=lambda item: item.timestamp_ms)

        for label, span in WINDOWS:
            start_ms = now_ms - int(span.total_seconds() * 1000)
            in_window = [item for item in ordered if item.timestamp_ms >= start_ms]
            texts = [item for item in in_window if item.has_text]
            if texts:
                return WindowSelection(
                    reason=REASON_SUCCESS,
                    window=label,
                    lines=[self._text_line(item) for item in texts],
                    text_count=len(texts),
                    message_count=len(in_window),
                )

        widest_label, widest_span = WINDOWS[-1]
        start_ms = now_ms - int(widest_span.total_seconds() * 1000)
        activity = [item for item in ordered if item.timestamp_ms >= start_ms and not item.has_text]
        if activity:
            return WindowSelection(
                reason=REASON_ACTIVITY_ONLY,
                window=widest_label,
                lines=[self._activity_line(item) for item in activity],
                text_count=0,
                message_count=len(activity),
            )

        return WindowSelection(reason=REASON_NO_TEXT_MESSAGES)

    def _stamp(self, item: ExtractedMessage) -> str:
        moment = datetime.fromtimestamp(item.timestamp_ms / 1000, tz=self.display_tz)
        return moment.strftime("%d/%m %H:%M")

    def _text_line(self, item: ExtractedMessage) -> str:
        text = " ".join((item.text or "").split())
        return self._clip(f"[{self._stamp(item)}] {item.sender}: {text}")

    def _activity_line(self, item: ExtractedMessage) -> str:
        return self._clip(f"[{self._stamp(item)}] {item.sender}: {msg('non_text_marker')}")

    def _clip(self, line: str) -> str:
        if len(line) <= self.max_line_chars:
            return line
        return line[: self.max_line_chars - 3].rstrip() + "..."
