from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

import dateparser


_NUMERIC_RE = re.compile(r"^\s*(\d+)(?:\.\d+)?\s*$")

# Where the gateway may put a message's timestamp, most specific first.
TIMESTAMP_PATHS: tuple[tuple[str, ...], ...] = (
    ("messageTimestampMs",),
    ("messageTimestamp",),
    ("timestamp",),
    ("message", "messageTimestamp"),
    ("message", "messageContextInfo", "messageTimestamp"),
    ("key", "messageTimestamp"),
)


def to_epoch_ms(candidate: Any) -> int | None:
    """Convert a timestamp in an unknown unit or format to epoch milliseconds.

    Integers are classified by their decimal digit count: 10 digits are
    seconds, 13 milliseconds, 16 microseconds and 19 or more nanoseconds.
    Lengths between those anchors fall into the nearest bucket (<=11 seconds,
    12-14 milliseconds, 15-17 microseconds, 18 nanoseconds). Numeric strings
    are treated as numbers; other strings are parsed as ISO-8601 with
    ``dateparser`` as a fallback. Returns ``None`` for anything that does not
    resolve to a positive instant.
    """
    if candidate is None or isinstance(candidate, bool):
        return None

    if isinstance(candidate, dict):
        return to_epoch_ms(_protobuf_long(candidate))

    if isinstance(candidate, float):
        if candidate != candidate or candidate <= 0:
            return None
        return _scale(int(candidate))

    if isinstance(candidate, int):
        if candidate <= 0:
            return None
        return _scale(candidate)

    if isinstance(candidate, str):
        text = candidate.strip()
        if not text:
            return None
        match = _NUMERIC_RE.match(text)
        if match:
            value = int(match.group(1))
            return _scale(value) if value > 0 else None
        return _parse_datetime_ms(text)

    return None


def message_timestamp_ms(message: dict[str, Any]) -> int | None:
    for path in TIMESTAMP_PATHS:
        value = dig(message, path)
        millis = to_epoch_ms(value)
        if millis:
            return millis
    return None


def _scale(value: int) -> int:
    digits = len(str(value))
    if digits <= 11:
        return value * 1000
    if digits <= 14:
        return value
    if digits <= 17:
        return value // 1_000
    return value // 1_000_000


def _protobuf_long(value: dict[str, Any]) -> int | None:
    if "low" not in value:
        return None
    try:
        low = int(value.get("low") or 0) & 0xFFFFFFFF
        high = int(value.get("high") or 0)
    except (TypeError, ValueError):
        return None
    return (high << 32) + low


def _parse_datetime_ms(text: str) -> int | None:
    parsed: datetime | None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = dateparser.parse(text, settings={"TIMEZONE": "UTC", "RETURN_AS_TIMEZONE_AWARE": True})
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    millis = int(parsed.timestamp() * 1000)
    return millis if millis > 0 else None


def dig(data: Any, path: tuple[str, ...]) -> Any:
    current = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current
