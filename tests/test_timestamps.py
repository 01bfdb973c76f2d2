from __future__ import annotations

import random
import unittest

from resumezap.app.ingest.timestamps import message_timestamp_ms, to_epoch_ms


BASE_MS = 1_700_000_000_000


class TimestampNormalizerTests(unittest.TestCase):
    def test_units_are_classified_by_digit_count(self) -> None:
        self.assertEqual(to_epoch_ms(1_700_000_000), BASE_MS)
        self.assertEqual(to_epoch_ms(1_700_000_000_123), BASE_MS + 123)
        self.assertEqual(to_epoch_ms(1_700_000_000_123_456), BASE_MS + 123)
        self.assertEqual(to_epoch_ms(1_700_000_000_123_456_789), BASE_MS + 123)

    def test_numeric_strings_and_protobuf_longs(self) -> None:
        self.assertEqual(to_epoch_ms("1700000000"), BASE_MS)
        self.assertEqual(to_epoch_ms(" 1700000000123 "), BASE_MS + 123)
        self.assertEqual(to_epoch_ms("1700000000.75"), BASE_MS)
        self.assertEqual(to_epoch_ms({"low": 1_700_000_000, "high": 0, "unsigned": False}), BASE_MS)

    def test_iso_strings_fall_back_to_datetime_parsing(self) -> None:
        self.assertEqual(to_epoch_ms("2023-11-14T22:13:20Z"), BASE_MS)
        self.assertEqual(to_epoch_ms("2023-11-14T19:13:20-03:00"), BASE_MS)

    def test_invalid_candidates_yield_none(self) -> None:
        for candidate in (None, True, False, 0, -5, "", "   ", "???", {}, [], {"high": 1}):
            with self.subTest(candidate=candidate):
                self.assertIsNone(to_epoch_ms(candidate))

    def test_mixed_units_sort_back_into_true_order(self) -> None:
        true_ms = [BASE_MS + step * 61_000 for step in range(40)]
        encoders = (
            lambda ms: ms // 1000,
            lambda ms: ms,
            lambda ms: ms * 1000,
            lambda ms: ms * 1_000_000,
            lambda ms: str(ms // 1000),
            lambda ms: str(ms * 1000),
        )
        encoded = [(encoders[index % len(encoders)](ms), ms) for index, ms in enumerate(true_ms)]
        random.Random(7).shuffle(encoded)

        normalized = sorted(encoded, key=lambda pair: to_epoch_ms(pair[0]))

        self.assertEqual([ms for _, ms in normalized], true_ms)
        self.assertEqual([to_epoch_ms(value) for value, _ in normalized], true_ms)

    def test_message_timestamp_uses_first_valid_candidate(self) -> None:
        message = {
            "messageTimestamp": 0,
            "timestamp": None,
            "message": {"messageContextInfo": {"messageTimestamp": 1_700_000_000}},
            "key": {"messageTimestamp": 1_600_000_000},
        }
        self.assertEqual(message_timestamp_ms(message), BASE_MS)

    def test_message_without_timestamp_resolves_to_none(self) -> None:
        self.assertIsNone(message_timestamp_ms({"key": {"id": "x"}, "message": {"conversation": "oi"}}))


if __name__ == "__main__":
    unittest.main()
