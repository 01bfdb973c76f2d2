from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from resumezap.app.ingest.timestamps import dig
from resumezap.app.messages import msg
from resumezap.clients.evolution_client import EvolutionClient
from resumezap.core.errors import (
    ConflictError,
    ConnectionUnavailableError,
    DeliveryError,
    GatewayError,
    NotFoundError,
)
from resumezap.storage.database import Database


LOGGER = logging.getLogger(__name__)

DELIVERY_SENT = "sent"
DELIVERY_FAILED = "failed"
DELIVERY_SKIPPED = "skipped"


@dataclass
class DeliveryOutcome:
    summary_id: int
    group_id: str
    status: str
    message_id: str | None = None
    error: str | None = None

    @property
    def sent(self) -> bool:
        return self.status == DELIVERY_SENT

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _error_text(exc: GatewayError) -> str:
    if exc.payload is None:
        return exc.message
    if isinstance(exc.payload, str):
        return exc.payload
    return json.dumps(exc.payload, ensure_ascii=False, default=str)


class DeliveryDispatcher:
    def __init__(self, db: Database, evolution: EvolutionClient, utc_offset_hours: int = -3):
        self.db = db
        self.evolution = evolution
        self.display_tz = timezone(timedelta(hours=utc_offset_hours))

    def compose(self, group_name: str, summary_text: str, when: datetime | None = None) -> str:
        moment = (when or datetime.now(timezone.utc)).astimezone(self.display_tz)
        return "\n".join(
            [
                msg("delivery_title", group_name=group_name),
                msg("delivery_date", date=moment.strftime("%d/%m/%Y")),
                "",
                summary_text.strip(),
                "",
                "---",
                msg("delivery_footer"),
            ]
        )

    def dispatch(self, summary: sqlite3.Row, instance_name: str) -> DeliveryOutcome:
        """Send one stored summary into its group, at most once per (summary, group)."""
        summary_id = int(summary["id"])
        group_id = summary["group_id"]

        if self.db.get_delivery(summary_id, group_id) is not None:
            LOGGER.info("Summary %s already delivered to %s, skipping", summary_id, group_id)
            return DeliveryOutcome(summary_id, group_id, DELIVERY_SKIPPED)
        if not self.db.claim_delivery(summary_id, group_id, summary["user_id"]):
            LOGGER.info("Summary %s to %s claimed by another run, skipping", summary_id, group_id)
            return DeliveryOutcome(summary_id, group_id, DELIVERY_SKIPPED)

        try:
            text = self.compose(summary["group_name"], summary["summary_text"])
            response = self.evolution.send_text(instance_name, group_id, text)
            message_id = dig(response, ("key", "id"))
            message_id = str(message_id) if message_id else None
        except GatewayError as exc:
            error = _error_text(exc)
            LOGGER.warning("Delivery of summary %s to %s failed: %s", summary_id, group_id, error)
            self.db.finish_delivery(summary_id, group_id, DELIVERY_FAILED, error_message=error)
            return DeliveryOutcome(summary_id, group_id, DELIVERY_FAILED, error=error)
        except Exception as exc:
            self.db.finish_delivery(summary_id, group_id, DELIVERY_FAILED, error_message=str(exc) or type(exc).__name__)
            raise

        self.db.finish_delivery(summary_id, group_id, DELIVERY_SENT, evolution_message_id=message_id)
        LOGGER.info("Delivered summary %s to %s (message %s)", summary_id, group_id, message_id)
        return DeliveryOutcome(summary_id, group_id, DELIVERY_SENT, message_id=message_id)

    def dispatch_by_id(self, summary_id: int) -> DeliveryOutcome:
        summary = self.db.get_summary(summary_id)
        if summary is None:
            raise NotFoundError(msg("error_summary_not_found", summary_id=summary_id))
        outcome = self.dispatch(summary, self._instance_for(summary["user_id"]))
        if outcome.status == DELIVERY_FAILED:
            raise DeliveryError(outcome.error or "Delivery failed")
        return outcome

    def manual_send(self, user_id: str, summary_id: int) -> DeliveryOutcome:
        summary = self.db.get_summary_for_user(summary_id, user_id)
        if summary is None:
            raise NotFoundError(msg("error_summary_not_found", summary_id=summary_id))
        if self.db.get_delivery(summary_id, summary["group_id"]) is not None:
            raise ConflictError(msg("error_already_sent"))

        outcome = self.dispatch(summary, self._instance_for(user_id))
        if outcome.status == DELIVERY_SKIPPED:
            raise ConflictError(msg("error_already_sent"))
        if outcome.status == DELIVERY_FAILED:
            raise DeliveryError(outcome.error or "Delivery failed")
        return outcome

    def _instance_for(self, user_id: str) -> str:
        connection = self.db.get_connected_connection(user_id)
        if connection is None:
            raise ConnectionUnavailableError(msg("error_no_connection"))
        return connection["instance_name"]
