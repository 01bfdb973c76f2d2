from __future__ import annotations

import logging
from typing import Any

from resumezap.app.ingest.fetcher import unwrap_messages
from resumezap.app.messages import msg
from resumezap.clients.evolution_client import EvolutionClient
from resumezap.core.errors import ConnectionUnavailableError
from resumezap.storage.database import Database


LOGGER = logging.getLogger(__name__)


def normalize_group(raw: dict[str, Any]) -> dict[str, Any] | None:
    group_id = str(raw.get("id") or raw.get("remoteJid") or "").strip()
    if not group_id:
        return None
    participants = raw.get("participants")
    if isinstance(participants, list):
        participant_count = len(participants)
    else:
        try:
            participant_count = int(raw.get("size") or 0)
        except (TypeError, ValueError):
            participant_count = 0
    return {
        "group_id": group_id,
        "group_name": str(raw.get("subject") or "").strip() or msg("group_default_name"),
        "group_image": raw.get("pictureUrl"),
        "participant_count": participant_count,
    }


class GroupSync:
    def __init__(self, db: Database, evolution: EvolutionClient):
        self.db = db
        self.evolution = evolution

    def sync_groups(self, user_id: str) -> dict[str, Any]:
        connection = self.db.get_connected_connection(user_id)
        if connection is None:
            raise ConnectionUnavailableError(msg("error_no_connection"))

        data = self.evolution.fetch_all_groups(connection["instance_name"])
        groups = [group for group in (normalize_group(raw) for raw in unwrap_messages(data)) if group]
        if not groups:
            LOGGER.info("Gateway returned no groups for user %s; leaving stored groups untouched", user_id)
            return {"groups": [], "message": msg("groups_none_found")}

        self.db.upsert_groups(user_id, groups)
        archived = self.db.archive_missing_groups(user_id, [group["group_id"] for group in groups])
        LOGGER.info("Synced %s groups for user %s, archived %s", len(groups), user_id, archived)
        return {
            "groups": [dict(row) for row in self.db.list_groups(user_id) if not row["archived"]],
            "archived": archived,
        }
