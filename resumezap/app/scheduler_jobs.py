from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any

from resumezap.app.connection_manager import MODE_TEMPORARY, ConnectionManager
from resumezap.app.delivery import DeliveryDispatcher
from resumezap.app.generation import SummaryGenerator
from resumezap.app.messages import msg
from resumezap.core.errors import ResumeZapError, ValidationError
from resumezap.storage.database import Database


LOGGER = logging.getLogger(__name__)

EXECUTION_COMPLETED = "completed"
EXECUTION_COMPLETED_WITH_ERRORS = "completed_with_errors"
EXECUTION_FAILED = "failed"


def preferred_hour(value: str | None) -> int | None:
    """Hour component of a ``HH:MM[:SS]`` preference, or None when unusable."""
    if not value:
        return None
    head = str(value).strip().split(":", 1)[0]
    try:
        hour = int(head)
    except ValueError:
        return None
    return hour if 0 <= hour <= 23 else None


class ScheduledSummaryRunner:
    """Hourly entry point: pick the users whose slot is now and run them one by one."""

    def __init__(
        self,
        db: Database,
        connections: ConnectionManager,
        generator: SummaryGenerator,
        dispatcher: DeliveryDispatcher,
        utc_offset_hours: int = -3,
    ) -> None:
        self.db = db
        self.connections = connections
        self.generator = generator
        self.dispatcher = dispatcher
        self.utc_offset_hours = utc_offset_hours

    def local_hour(self, now: datetime) -> int:
        return now.astimezone(timezone(timedelta(hours=self.utc_offset_hours))).hour

    def select_users(self, hour: int) -> list[sqlite3.Row]:
        connected = self.db.list_connected_user_ids()
        selected = []
        for profile in self.db.list_profiles_with_summary_time():
            profile_hour = preferred_hour(profile["preferred_summary_time"])
            if profile_hour is None:
                LOGGER.warning(
                    "Ignoring unparseable preferred_summary_time %r for user %s",
                    profile["preferred_summary_time"],
                    profile["id"],
                )
                continue
            if profile_hour == hour and profile["id"] in connected:
                selected.append(profile)
        return selected

    async def run_hourly(self) -> None:
        await asyncio.to_thread(self.run)

    def run(self, simulated_hour: int | None = None, now: datetime | None = None) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        if simulated_hour is not None and not 0 <= int(simulated_hour) <= 23:
            raise ValidationError("simulatedHour must be between 0 and 23")
        hour = int(simulated_hour) if simulated_hour is not None else self.local_hour(now)
        base_details = {
            "local_hour": hour,
            "utc_hour": now.astimezone(timezone.utc).hour,
            "utc_offset_hours": self.utc_offset_hours,
            "simulated": simulated_hour is not None,
        }
        execution_id = self.db.start_execution(now.isoformat(), base_details)
        LOGGER.info("Scheduled run %s started for local hour %02d", execution_id, hour)

        try:
            if not self.db.list_profiles_with_summary_time():
                message = msg("status_no_profiles")
                self.db.finish_execution(execution_id, EXECUTION_COMPLETED, 0, 0, 0, {**base_details, "message": message})
                return {"success": True, "message": message, "processed": 0, "executionId": execution_id}

            users = self.select_users(hour)
            if not users:
                message = msg("status_no_users", hour=hour, offset=self.utc_offset_hours)
                LOGGER.info(message)
                self.db.finish_execution(execution_id, EXECUTION_COMPLETED, 0, 0, 0, {**base_details, "message": message})
                return {"success": True, "message": message, "processed": 0, "executionId": execution_id, **base_details}

            results: list[dict[str, Any]] = []
            for profile in users:
                try:
                    results.append(self.process_user(profile, now))
                except Exception as exc:
                    LOGGER.exception("Scheduled run failed for user %s: %s", profile["id"], exc)
                    results.append({"userId": profile["id"], "success": False, "error": str(exc)})
        except Exception as exc:
            LOGGER.exception("Scheduled run %s aborted: %s", execution_id, exc)
            self.db.finish_execution(
                execution_id,
                EXECUTION_FAILED,
                0,
                0,
                1,
                {**base_details, "error": str(exc), "fatalError": True},
            )
            raise

        success_count = sum(1 for item in results if item.get("success"))
        error_count = len(results) - success_count
        total_summaries = sum(int(item.get("summariesCount") or 0) for item in results)
        status = EXECUTION_COMPLETED_WITH_ERRORS if error_count else EXECUTION_COMPLETED
        self.db.finish_execution(
            execution_id,
            status,
            len(users),
            total_summaries,
            error_count,
            {
                **base_details,
                "results": results,
                "successCount": success_count,
                "errorCount": error_count,
                "totalSummaries": total_summaries,
            },
        )
        LOGGER.info(
            "Scheduled run %s finished: %s users, %s ok, %s errors, %s summaries",
            execution_id,
            len(users),
            success_count,
            error_count,
            total_summaries,
        )
        return {
            "success": True,
            "message": msg("status_processed", count=len(users), hour=hour, offset=self.utc_offset_hours),
            "executionId": execution_id,
            "successCount": success_count,
            "errorCount": error_count,
            "totalSummaries": total_summaries,
            "results": results,
            **base_details,
        }

    def process_user(self, profile: sqlite3.Row, now: datetime) -> dict[str, Any]:
        user_id = profile["id"]
        mode = profile["connection_mode"]
        connection = self.db.get_connected_connection(user_id)
        if connection is None:
            return {"userId": user_id, "success": False, "error": msg("error_no_connection")}

        try:
            self.connections.ensure_session(user_id, connection, mode)
        except ResumeZapError as exc:
            LOGGER.warning("Session unavailable for user %s: %s", user_id, exc)
            return {"userId": user_id, "success": False, "error": str(exc), "connectionMode": mode}

        try:
            try:
                generation = self.generator.generate_for_user(user_id, now)
            except ResumeZapError as exc:
                LOGGER.warning("Generation failed for user %s: %s", user_id, exc)
                return {"userId": user_id, "success": False, "error": str(exc), "connectionMode": mode}

            deliveries: list[dict[str, Any]] = []
            send_to_group = bool(profile["send_summary_to_group"])
            if send_to_group:
                for summary_id in generation.summary_ids:
                    summary = self.db.get_summary(summary_id)
                    if summary is None:
                        continue
                    deliveries.append(self.dispatcher.dispatch(summary, connection["instance_name"]).as_dict())

            return {
                "userId": user_id,
                "success": True,
                "summariesCount": len(generation.summary_ids),
                "groups": generation.details,
                "sentToGroups": send_to_group,
                "deliveries": deliveries,
                "connectionMode": mode,
            }
        finally:
            if mode == MODE_TEMPORARY:
                self.connections.release_session(connection)
