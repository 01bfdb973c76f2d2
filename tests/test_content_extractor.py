from __future__ import annotations

import unittest

from resumezap.app.ingest.content import (
    KIND_NON_TEXT,
    KIND_TEXT,
    extract_message,
    extract_messages,
    extract_sender,
    extract_text,
    format_phone,
)


def _raw(message: dict | None = None, **extra) -> dict:
    data = {"key": {"remoteJid": "120363@g.us", "fromMe": False}, "messageTimestamp": 1_700_000_000}
    if message is not None:
        data["message"] = message
    data.update(extra)
    return data


class ContentExtractorTests(unittest.TestCase):
    def test_text_rules_cover_captions_and_interactive_replies(self) -> None:
        cases = {
            "plain": {"conversation": "plain"},
            "extended": {"extendedTextMessage": {"text": "extended"}},
            "image": {"imageMessage": {"caption": "image"}},
            "video": {"videoMessage": {"caption": "video"}},
            "document": {"documentWithCaptionMessage": {"message": {"documentMessage": {"caption": "document"}}}},
            "button": {"buttonsResponseMessage": {"selectedDisplayText": "button"}},
            "list": {"listResponseMessage": {"title": "list"}},
        }
        for expected, payload in cases.items():
            with self.subTest(expected=expected):
                self.assertEqual(extract_text(_raw(payload)), expected)

    def test_media_without_caption_is_non_text(self) -> None:
        extracted = extract_message(_raw({"imageMessage": {"mimetype": "image/jpeg"}}, pushName="Ana"))
        self.assertIsNotNone(extracted)
        self.assertEqual(extracted.kind, KIND_NON_TEXT)
        self.assertIsNone(extracted.text)
        self.assertFalse(extracted.has_text)

    def test_from_me_uses_fixed_label(self) -> None:
        raw = _raw({"conversation": "oi"}, pushName="Ignored")
        raw["key"]["fromMe"] = True
        self.assertEqual(extract_sender(raw), "Você")

    def test_sender_prefers_display_names_then_phone_then_anonymous(self) -> None:
        self.assertEqual(extract_sender(_raw(senderName="Bruno")), "Bruno")
        with_jid = _raw()
        with_jid["key"]["participant"] = "5511987654321@s.whatsapp.net"
        self.assertEqual(extract_sender(with_jid), "+55 11 98765-4321")
        self.assertEqual(extract_sender(_raw()), "Anônimo")

    def test_format_phone(self) -> None:
        self.assertEqual(format_phone("551133334444@s.whatsapp.net"), "+55 11 3333-4444")
        self.assertEqual(format_phone("14155552671@s.whatsapp.net"), "+14155552671")
        self.assertEqual(format_phone("351912345678@s.whatsapp.net"), "+351912345678")
        self.assertIsNone(format_phone("123@lid"))

    def test_messages_without_timestamp_are_dropped_and_rest_sorted(self) -> None:
        late = _raw({"conversation": "late"}, messageTimestamp=1_700_000_100)
        early = _raw({"conversation": "early"}, messageTimestamp=1_700_000_000_000)
        undated = {"key": {"id": "x"}, "message": {"conversation": "lost"}}

        extracted = extract_messages([late, undated, early, "garbage"])

        self.assertEqual([item.text for item in extracted], ["early", "late"])
        self.assertTrue(all(item.kind == KIND_TEXT for item in extracted))


if __name__ == "__main__":
    unittest.main()
