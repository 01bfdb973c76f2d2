from __future__ import annotations

import logging
from typing import Any

from resumezap.app.messages import msg
from resumezap.storage.database import Database


LOGGER = logging.getLogger(__name__)


def cleanup_user_history(db: Database, user_id: str) -> dict[str, Any]:
    """Drop a user's summaries and deliveries; groups, preferences and connections stay."""
    deliveries, summaries = db.delete_user_history(user_id)
    LOGGER.info("Cleaned history for user %s: %s summaries, %s deliveries", user_id, summaries, deliveries)
    return {
        "success": True,
        "message": msg("history_cleaned"),
        "deletedSummaries": summaries,
        "deletedDeliveries": deliveries,
    }
