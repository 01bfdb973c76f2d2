from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from resumezap.clients.evolution_client import EvolutionClient


LOGGER = logging.getLogger(__name__)

STRATEGY_SECONDS = "timestamp_seconds"
STRATEGY_MILLISECONDS = "timestamp_milliseconds"
STRATEGY_UNFILTERED = "unfiltered"
STRATEGY_GLOBAL = "global_fallback"

_LIST_KEYS = ("data", "messages", "result", "items")


@dataclass
class FetchResult:
    messages: list[dict[str, Any]] = field(default_factory=list)
    strategy: str | None = None
    attempts: list[str] = field(default_factory=list)


def unwrap_messages(data: Any) -> list[dict[str, Any]]:
    """Pull the message list out of the shapes the gateway has been seen to return."""
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if not isinstance(data, dict):
        return []
    if isinstance(data.get("records"), list):
        return unwrap_messages(data["records"])
    for key in _LIST_KEYS:
        value = data.get(key)
        if isinstance(value, list):
            return unwrap_messages(value)
        if isinstance(value, dict) and isinstance(value.get("records"), list):
            return unwrap_messages(value["records"])
    return []


def remote_jid(message: dict[str, Any]) -> str:
    key = message.get("key")
    if isinstance(key, dict):
        return str(key.get("remoteJid") or "")
    return str(message.get("remoteJid") or "")


class MessageFetcher:
    def __init__(self, evolution: EvolutionClient, message_limit: int = 500, global_limit: int = 1000):
        self.evolution = evolution
        self.message_limit = message_limit
        self.global_limit = global_limit

    def fetch(self, instance_name: str, group_id: str, since: datetime) -> FetchResult:
        """Walk the query ladder until one strategy returns messages for ``group_id``.

        The gateway's timestamp unit is inconsistent across versions, so the
        lower bound is tried in seconds, then milliseconds, then dropped, and
        finally the instance-wide recent list is filtered client-side.
        ``GatewayError`` from any step propagates to the caller.
        """
        since_seconds = int(since.timestamp())
        ladder: list[tuple[str, Callable[[], list[dict[str, Any]]]]] = [
            (STRATEGY_SECONDS, lambda: self._query(instance_name, group_id, since_seconds)),
            (STRATEGY_MILLISECONDS, lambda: self._query(instance_name, group_id, since_seconds * 1000)),
            (STRATEGY_UNFILTERED, lambda: self._query(instance_name, group_id, None)),
            (STRATEGY_GLOBAL, lambda: self._query_global(instance_name, group_id)),
        ]

        result = FetchResult()
        for strategy, run in ladder:
            result.attempts.append(strategy)
            messages = run()
            if messages:
                result.messages = messages
                result.strategy = strategy
                LOGGER.info("Fetched %s messages for group %s via %s", len(messages), group_id, strategy)
                return result
            LOGGER.debug("Strategy %s returned nothing for group %s", strategy, group_id)

        LOGGER.info("No messages for group %s after %s strategies", group_id, len(ladder))
        return result

    def _query(self, instance_name: str, group_id: str, since_value: int | None) -> list[dict[str, Any]]:
        where: dict[str, Any] = {"key": {"remoteJid": group_id}}
        if since_value is not None:
            where["messageTimestamp"] = {"$gte": since_value}
        data = self.evolution.find_messages(instance_name, where=where, limit=self.message_limit)
        # Some gateway builds ignore the where clause entirely.
        return [message for message in unwrap_messages(data) if remote_jid(message) in ("", group_id)]

    def _query_global(self, instance_name: str, group_id: str) -> list[dict[str, Any]]:
        data = self.evolution.find_messages(instance_name, where=None, limit=self.global_limit)
        return [message for message in unwrap_messages(data) if remote_jid(message) == group_id]
