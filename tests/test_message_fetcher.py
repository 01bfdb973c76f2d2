from __future__ import annotations

import unittest
from datetime import datetime, timezone

from resumezap.app.ingest.fetcher import (
    STRATEGY_GLOBAL,
    STRATEGY_MILLISECONDS,
    STRATEGY_SECONDS,
    MessageFetcher,
    unwrap_messages,
)
from resumezap.core.errors import GatewayError


GROUP = "120363@g.us"
SINCE = datetime(2026, 10, 1, tzinfo=timezone.utc)


class _ScriptedEvolution:
    def __init__(self, responses: list) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    def find_messages(self, instance_name: str, where=None, limit: int = 500):
        self.calls.append({"instance": instance_name, "where": where, "limit": limit})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _message(jid: str = GROUP, text: str = "oi") -> dict:
    return {"key": {"remoteJid": jid}, "message": {"conversation": text}, "messageTimestamp": 1_790_000_000}


class MessageFetcherTests(unittest.TestCase):
    def test_first_strategy_uses_seconds_filter(self) -> None:
        evolution = _ScriptedEvolution([[_message()]])
        result = MessageFetcher(evolution).fetch("inst", GROUP, SINCE)

        self.assertEqual(result.strategy, STRATEGY_SECONDS)
        self.assertEqual(len(result.messages), 1)
        where = evolution.calls[0]["where"]
        self.assertEqual(where["key"], {"remoteJid": GROUP})
        self.assertEqual(where["messageTimestamp"], {"$gte": int(SINCE.timestamp())})

    def test_escalates_to_milliseconds_when_seconds_is_empty(self) -> None:
        evolution = _ScriptedEvolution([[], {"messages": {"records": [_message()]}}])
        result = MessageFetcher(evolution).fetch("inst", GROUP, SINCE)

        self.assertEqual(result.strategy, STRATEGY_MILLISECONDS)
        self.assertEqual(evolution.calls[1]["where"]["messageTimestamp"], {"$gte": int(SINCE.timestamp()) * 1000})

    def test_global_fallback_filters_by_group(self) -> None:
        evolution = _ScriptedEvolution([[], [], {"data": []}, [_message("other@g.us"), _message(GROUP, "mine")]])
        result = MessageFetcher(evolution, message_limit=50, global_limit=300).fetch("inst", GROUP, SINCE)

        self.assertEqual(result.strategy, STRATEGY_GLOBAL)
        self.assertEqual([item["message"]["conversation"] for item in result.messages], ["mine"])
        self.assertNotIn("messageTimestamp", evolution.calls[2]["where"])
        self.assertEqual(evolution.calls[2]["limit"], 50)
        self.assertIsNone(evolution.calls[3]["where"])
        self.assertEqual(evolution.calls[3]["limit"], 300)

    def test_all_empty_returns_empty_result(self) -> None:
        evolution = _ScriptedEvolution([[], [], [], []])
        result = MessageFetcher(evolution).fetch("inst", GROUP, SINCE)

        self.assertEqual(result.messages, [])
        self.assertIsNone(result.strategy)
        self.assertEqual(len(result.attempts), 4)

    def test_gateway_error_propagates(self) -> None:
        evolution = _ScriptedEvolution([[], GatewayError("boom", status_code=500)])
        with self.assertRaises(GatewayError):
            MessageFetcher(evolution).fetch("inst", GROUP, SINCE)

    def test_unwrap_messages_shapes(self) -> None:
        item = _message()
        for shape in ([item], {"data": [item]}, {"result": [item]}, {"items": [item]}, {"records": [item]}):
            with self.subTest(shape=shape):
                self.assertEqual(unwrap_messages(shape), [item])
        self.assertEqual(unwrap_messages("nope"), [])


if __name__ == "__main__":
    unittest.main()
