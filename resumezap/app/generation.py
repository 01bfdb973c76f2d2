from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from resumezap.app.ingest.content import extract_messages
from resumezap.app.ingest.fetcher import MessageFetcher
from resumezap.app.ingest.windows import WindowSelector, widest_window_start
from resumezap.app.messages import msg
from resumezap.app.summarizer import Summarizer, SummaryOptions
from resumezap.core.errors import AIGenerationError, ConnectionUnavailableError, GatewayError, ValidationError
from resumezap.storage.database import Database


LOGGER = logging.getLogger(__name__)

REASON_FETCH_ERROR = "fetch_error"
REASON_AI_ERROR = "ai_error"
REASON_ERROR = "error"


@dataclass
class GenerationResult:
    user_id: str
    summary_ids: list[int] = field(default_factory=list)
    details: list[dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "summaries_count": len(self.summary_ids),
            "summary_ids": list(self.summary_ids),
            "details": list(self.details),
        }


class SummaryGenerator:
    """Per-user loop over selected groups: fetch, pick a window, summarize, persist."""

    def __init__(
        self,
        db: Database,
        fetcher: MessageFetcher,
        selector: WindowSelector,
        summarizer: Summarizer,
        utc_offset_hours: int = -3,
    ):
        self.db = db
        self.fetcher = fetcher
        self.selector = selector
        self.summarizer = summarizer
        self.local_tz = timezone(timedelta(hours=utc_offset_hours))

    def generate_for_user(self, user_id: str, now: datetime | None = None) -> GenerationResult:
        now = now or datetime.now(timezone.utc)
        connection = self.db.get_connected_connection(user_id)
        if connection is None:
            raise ConnectionUnavailableError(msg("error_no_connection"))

        groups = self.db.list_selected_groups(user_id)
        if not groups:
            raise ValidationError(msg("error_no_groups"))

        profile = self.db.get_profile(user_id)
        plan = profile["subscription_plan"] if profile is not None else None
        options = SummaryOptions.from_preferences(self.db.get_preferences(user_id))
        summary_date = now.astimezone(self.local_tz).date().isoformat()

        LOGGER.info("Generating summaries for user %s: %s groups, plan=%s", user_id, len(groups), plan)
        result = GenerationResult(user_id=user_id)
        for group in groups:
            detail = self._process_group(
                user_id,
                connection["instance_name"],
                group["group_id"],
                group["group_name"],
                plan,
                options,
                summary_date,
                now,
            )
            if detail.get("summary_id") is not None:
                result.summary_ids.append(int(detail["summary_id"]))
            result.details.append(detail)

        self.db.increment_summaries_generated(user_id, len(result.summary_ids))
        LOGGER.info("User %s: %s summaries from %s groups", user_id, len(result.summary_ids), len(groups))
        return result

    def _process_group(
        self,
        user_id: str,
        instance_name: str,
        group_id: str,
        group_name: str,
        plan: str | None,
        options: SummaryOptions,
        summary_date: str,
        now: datetime,
    ) -> dict[str, Any]:
        detail: dict[str, Any] = {
            "group_id": group_id,
            "group_name": group_name,
            "reason": None,
            "text_count": 0,
            "message_count": 0,
            "window": None,
            "strategy": None,
        }
        try:
            fetched = self.fetcher.fetch(instance_name, group_id, widest_window_start(now))
        except GatewayError as exc:
            LOGGER.warning("Fetching messages for %s failed: %s", group_name, exc)
            detail.update(reason=REASON_FETCH_ERROR, error=str(exc))
            return detail

        try:
            extracted = extract_messages(fetched.messages)
            if extracted:
                latest = datetime.fromtimestamp(extracted[-1].timestamp_ms / 1000, tz=timezone.utc)
                self.db.touch_group_activity(user_id, group_id, latest.isoformat())

            selection = self.selector.select(extracted, now, raw_count=len(fetched.messages))
            detail.update(
                strategy=fetched.strategy,
                window=selection.window,
                text_count=selection.text_count,
                message_count=selection.message_count,
            )
            if not selection.summarizable:
                LOGGER.info("Skipping %s: %s", group_name, selection.reason)
                detail["reason"] = selection.reason
                return detail

            try:
                summary_text = self.summarizer.summarize(group_name, selection, plan, options)
            except AIGenerationError as exc:
                LOGGER.warning("No summary for %s: %s", group_name, exc)
                detail.update(reason=REASON_AI_ERROR, error=str(exc))
                return detail

            summary_id = self.db.create_summary(
                user_id=user_id,
                group_id=group_id,
                group_name=group_name,
                summary_text=summary_text,
                message_count=selection.message_count,
                summary_date=summary_date,
            )
        except Exception as exc:
            LOGGER.exception("Unexpected failure summarizing %s: %s", group_name, exc)
            detail.update(reason=REASON_ERROR, error=str(exc))
            return detail

        detail.update(reason=selection.reason, summary_id=summary_id)
        LOGGER.info("Summary %s saved for %s (%s window)", summary_id, group_name, selection.window)
        return detail
