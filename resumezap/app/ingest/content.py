from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from resumezap.app.ingest.timestamps import dig, message_timestamp_ms
from resumezap.app.messages import msg


KIND_TEXT = "text"
KIND_NON_TEXT = "non_text"

SENDER_NAME_PATHS: tuple[tuple[str, ...], ...] = (
    ("pushName",),
    ("senderName",),
    ("notifyName",),
    ("verifiedBizName",),
)

SENDER_JID_PATHS: tuple[tuple[str, ...], ...] = (
    ("key", "participant"),
    ("participant",),
    ("key", "participantAlt"),
)

# Ordered extraction rules over the gateway's message payload variants.
TEXT_PATHS: tuple[tuple[str, ...], ...] = (
    ("conversation",),
    ("extendedTextMessage", "text"),
    ("imageMessage", "caption"),
    ("videoMessage", "caption"),
    ("documentMessage", "caption"),
    ("documentWithCaptionMessage", "message", "documentMessage", "caption"),
    ("buttonsResponseMessage", "selectedDisplayText"),
    ("listResponseMessage", "title"),
    ("templateButtonReplyMessage", "selectedDisplayText"),
    ("interactiveResponseMessage", "body", "text"),
)


@dataclass(frozen=True)
class ExtractedMessage:
    sender: str
    text: str | None
    timestamp_ms: int
    kind: str

    @property
    def has_text(self) -> bool:
        return self.kind == KIND_TEXT


def extract_text(raw: dict[str, Any]) -> str | None:
    payload = raw.get("message")
    if not isinstance(payload, dict):
        return None
    for path in TEXT_PATHS:
        value = dig(payload, path)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_sender(raw: dict[str, Any]) -> str:
    key = raw.get("key") if isinstance(raw.get("key"), dict) else {}
    if key.get("fromMe"):
        return msg("sender_you")

    for path in SENDER_NAME_PATHS:
        value = dig(raw, path)
        if isinstance(value, str) and value.strip():
            return value.strip()

    for path in SENDER_JID_PATHS:
        value = dig(raw, path)
        if isinstance(value, str) and value.strip():
            phone = format_phone(value)
            if phone:
                return phone

    return msg("sender_anonymous")


def format_phone(jid: str) -> str | None:
    """Render ``5511987654321@s.whatsapp.net`` as ``+55 11 98765-4321``."""
    local_part = jid.split("@", 1)[0].split(":", 1)[0]
    digits = re.sub(r"\D", "", local_part)
    if len(digits) < 8 or len(digits) > 15:
        return None
    if digits.startswith("55") and len(digits) in (12, 13):
        area = digits[2:4]
        number = digits[4:]
        return f"+55 {area} {number[:-4]}-{number[-4:]}"
    # Country code length is not knowable from the digits alone.
    return f"+{digits}"


def extract_message(raw: Any) -> ExtractedMessage | None:
    """Normalize one raw gateway message; ``None`` when it has no usable timestamp."""
    if not isinstance(raw, dict):
        return None
    timestamp_ms = message_timestamp_ms(raw)
    if not timestamp_ms:
        return None
    text = extract_text(raw)
    return ExtractedMessage(
        sender=extract_sender(raw),
        text=text,
        timestamp_ms=timestamp_ms,
        kind=KIND_TEXT if text else KIND_NON_TEXT,
    )


def extract_messages(raw_messages: list[Any]) -> list[ExtractedMessage]:
    extracted = [item for item in (extract_message(raw) for raw in raw_messages) if item is not None]
    extracted.sort(key=lambda item: item.timestamp_ms)
    return extracted
