from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from resumezap.app.delivery import DeliveryDispatcher
from resumezap.app.generation import GenerationResult
from resumezap.app.scheduler_jobs import ScheduledSummaryRunner, preferred_hour
from resumezap.core.errors import ConnectionUnavailableError, ValidationError
from resumezap.storage.database import Database


def _connected(db: Database, user_id: str, instance_id: str):
    expires = (datetime.now(timezone.utc) + timedelta(seconds=60)).isoformat()
    db.claim_connecting_connection(user_id, instance_id, expires)
    return db.record_polled_status(user_id, instance_id, "connected")


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class _FakeConnections:
    def __init__(self, unavailable: tuple[str, ...] = ()) -> None:
        self.unavailable = unavailable
        self.ensured: list[tuple[str, str]] = []
        self.released: list[str] = []

    def ensure_session(self, user_id: str, connection, connection_mode: str) -> None:
        self.ensured.append((user_id, connection_mode))
        if user_id in self.unavailable:
            raise ConnectionUnavailableError("session closed")

    def release_session(self, connection) -> None:
        self.released.append(connection["user_id"])


class _FakeGenerator:
    def __init__(self, db: Database, crashing: tuple[str, ...] = ()) -> None:
        self.db = db
        self.crashing = crashing
        self.calls: list[str] = []

    def generate_for_user(self, user_id: str, now: datetime) -> GenerationResult:
        self.calls.append(user_id)
        if user_id in self.crashing:
            raise RuntimeError("unexpected crash")
        summary_id = self.db.create_summary(user_id, f"{user_id}@g.us", "Equipe", "resumo", 2, "2026-10-19")
        return GenerationResult(user_id=user_id, summary_ids=[summary_id], details=[{"reason": "success"}])


class _FakeEvolution:
    def __init__(self) -> None:
        self.sent: list[str] = []

    def send_text(self, instance_name: str, number: str, text: str) -> dict:
        self.sent.append(number)
        return {"key": {"id": "MSG"}}


class ScheduledSummaryRunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db = Database(str(Path(self._tmp.name) / "resumezap.db"))
        self.evolution = _FakeEvolution()
        self.connections = _FakeConnections()
        self.generator = _FakeGenerator(self.db)

    def tearDown(self) -> None:
        self.db.close()
        self._tmp.cleanup()

    def _user(self, user_id: str, summary_time: str, connected: bool = True, **fields) -> None:
        self.db.upsert_profile(user_id, preferred_summary_time=summary_time, **fields)
        if connected:
            _connected(self.db, user_id, f"inst-{user_id}")

    def _runner(self) -> ScheduledSummaryRunner:
        dispatcher = DeliveryDispatcher(self.db, self.evolution)
        return ScheduledSummaryRunner(self.db, self.connections, self.generator, dispatcher, utc_offset_hours=-3)

    def test_preferred_hour_parsing(self) -> None:
        self.assertEqual(preferred_hour("09:00:00"), 9)
        self.assertEqual(preferred_hour("9:30"), 9)
        self.assertIsNone(preferred_hour("25:00"))
        self.assertIsNone(preferred_hour("nine"))
        self.assertIsNone(preferred_hour(None))

    def test_user_runs_only_in_their_local_hour(self) -> None:
        self._user("ana", "09:00:00")
        self._user("caio", "10:00:00")
        self._user("dora", "09:00:00", connected=False)

        runner = self._runner()
        self.assertEqual([row["id"] for row in runner.select_users(9)], ["ana"])
        self.assertEqual([row["id"] for row in runner.select_users(10)], ["caio"])
        self.assertEqual(runner.select_users(8), [])

        result = runner.run(now=NOW)
        self.assertEqual(result["local_hour"], 9)
        self.assertEqual(result["utc_hour"], 12)
        self.assertEqual(self.generator.calls, ["ana"])

    def test_failure_of_one_user_does_not_stop_others(self) -> None:
        self._user("ana", "09:00:00")
        self._user("bia", "09:15")
        self._user("caio", "09:00:00")
        self.generator.crashing = ("bia",)

        result = self._runner().run(now=NOW)

        self.assertEqual(self.generator.calls, ["ana", "bia", "caio"])
        self.assertEqual(result["successCount"], 2)
        self.assertEqual(result["errorCount"], 1)
        self.assertEqual(result["totalSummaries"], 2)

        executions = self.db.list_executions()
        self.assertEqual(len(executions), 1)
        execution = self.db.get_execution(executions[0]["id"])
        self.assertEqual(execution["status"], "completed_with_errors")
        self.assertEqual(execution["users_processed"], 3)
        self.assertEqual(execution["errors_count"], 1)
        self.assertEqual(len(execution["details"]["results"]), 3)

    def test_unavailable_session_is_reported_per_user(self) -> None:
        self._user("ana", "09:00:00")
        self.connections.unavailable = ("ana",)

        result = self._runner().run(now=NOW)

        self.assertFalse(result["results"][0]["success"])
        self.assertEqual(self.generator.calls, [])

    def test_group_delivery_and_temporary_release(self) -> None:
        self._user("ana", "09:00:00", send_summary_to_group=True, connection_mode="temporary")
        self._user("caio", "09:00:00")

        result = self._runner().run(now=NOW)

        by_user = {item["userId"]: item for item in result["results"]}
        self.assertTrue(by_user["ana"]["sentToGroups"])
        self.assertEqual(by_user["ana"]["deliveries"][0]["status"], "sent")
        self.assertEqual(by_user["caio"]["deliveries"], [])
        self.assertEqual(self.evolution.sent, ["ana@g.us"])
        self.assertEqual(self.connections.released, ["ana"])
        self.assertIn(("ana", "temporary"), self.connections.ensured)

    def test_simulated_hour_and_empty_outcomes(self) -> None:
        runner = self._runner()
        self.assertEqual(runner.run(now=NOW)["message"], "No profiles with summary time configured")

        self._user("caio", "10:00:00")
        quiet = runner.run(now=NOW)
        self.assertIn("09:00:00", quiet["message"])
        self.assertEqual(self.generator.calls, [])

        simulated = runner.run(simulated_hour=10, now=NOW)
        self.assertTrue(simulated["simulated"])
        self.assertEqual(self.generator.calls, ["caio"])
        self.assertEqual(len(self.db.list_executions()), 3)

        with self.assertRaises(ValidationError):
            runner.run(simulated_hour=24, now=NOW)


if __name__ == "__main__":
    unittest.main()
