from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from resumezap.storage.database import Database


def _iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


class DatabaseTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db = Database(str(Path(self._tmp.name) / "resumezap.db"))
        self.db.upsert_profile("user-1")

    def tearDown(self) -> None:
        self.db.close()
        self._tmp.cleanup()

    def test_only_one_active_connection_per_user(self) -> None:
        first = self.db.claim_connecting_connection("user-1", "inst-a", _iso(timedelta(seconds=60)))
        second = self.db.claim_connecting_connection("user-1", "inst-b", _iso(timedelta(seconds=60)))

        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(len(self.db.list_connections("user-1")), 1)

    def test_polled_status_never_creates_rows(self) -> None:
        self.assertIsNone(self.db.record_polled_status("user-1", "inst-unknown", "connected"))
        self.assertEqual(self.db.list_connections("user-1"), [])

    def test_polled_status_leaves_terminal_rows_alone(self) -> None:
        for status in ("expired", "disconnected"):
            with self.subTest(status=status):
                connection_id = self.db.claim_connecting_connection("user-1", f"inst-{status}", _iso(timedelta(seconds=60)))
                self.db.set_connection_status(connection_id, status)

                row = self.db.record_polled_status("user-1", f"inst-{status}", "connected")

                self.assertEqual(row["status"], status)
                self.assertIsNone(row["connected_at"])
        self.assertIsNone(self.db.get_active_connection("user-1"))

    def test_connected_at_is_stamped_once(self) -> None:
        self.db.claim_connecting_connection("user-1", "inst-a", _iso(timedelta(seconds=60)))
        first = self.db.record_polled_status("user-1", "inst-a", "connected", "5511999999999")
        second = self.db.record_polled_status("user-1", "inst-a", "connected")

        self.assertIsNotNone(first["connected_at"])
        self.assertEqual(first["connected_at"], second["connected_at"])
        self.assertEqual(second["phone_number"], "5511999999999")

    def test_disconnect_spares_claims_waiting_for_qr(self) -> None:
        old_id = self.db.claim_connecting_connection("user-1", "inst-old", _iso(timedelta(seconds=60)))
        self.db.update_connection_qr(old_id, "qr", _iso(timedelta(seconds=60)))
        self.assertEqual(self.db.disconnect_open_connections("user-1"), 1)

        self.db.claim_connecting_connection("user-1", "inst-new", _iso(timedelta(seconds=60)))
        self.assertEqual(self.db.disconnect_open_connections("user-1"), 0)
        self.assertEqual(self.db.get_active_connection("user-1")["instance_id"], "inst-new")

    def test_sweep_only_touches_rows_past_the_cutoff(self) -> None:
        self.db.claim_connecting_connection("user-1", "inst-a", _iso(timedelta(seconds=-30)))

        self.assertEqual(self.db.sweep_expired_connecting("user-1", _iso(timedelta(minutes=-2))), 0)
        self.assertEqual(self.db.sweep_expired_connecting("user-1", _iso(timedelta(0))), 1)
        self.assertIsNone(self.db.get_active_connection("user-1"))

    def test_delivery_claim_is_unique_per_summary_and_group(self) -> None:
        summary_id = self.db.create_summary("user-1", "g1@g.us", "Equipe", "texto", 3, "2026-10-19")

        self.assertTrue(self.db.claim_delivery(summary_id, "g1@g.us", "user-1"))
        self.assertFalse(self.db.claim_delivery(summary_id, "g1@g.us", "user-1"))
        self.db.finish_delivery(summary_id, "g1@g.us", "sent", evolution_message_id="MSG1")

        rows = self.db.list_deliveries("user-1")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["status"], "sent")
        self.assertIsNotNone(rows[0]["sent_at"])

    def test_group_sync_keeps_selection_and_archives_missing(self) -> None:
        self.db.upsert_groups("user-1", [{"group_id": "g1", "group_name": "Um"}, {"group_id": "g2", "group_name": "Dois"}])
        self.db.set_group_selected("user-1", "g1", True)
        self.db.upsert_groups("user-1", [{"group_id": "g1", "group_name": "Um novo"}])

        self.assertEqual(self.db.archive_missing_groups("user-1", ["g1"]), 1)
        selected = self.db.list_selected_groups("user-1")
        self.assertEqual([row["group_name"] for row in selected], ["Um novo"])
        self.assertEqual(self.db.get_profile("user-1")["selected_groups_count"], 1)

    def test_delete_user_history_resets_counter(self) -> None:
        summary_id = self.db.create_summary("user-1", "g1", "Um", "texto", 1, "2026-10-19")
        self.db.claim_delivery(summary_id, "g1", "user-1")
        self.db.increment_summaries_generated("user-1", 1)

        self.assertEqual(self.db.delete_user_history("user-1"), (1, 1))
        self.assertEqual(self.db.get_profile("user-1")["total_summaries_generated"], 0)

    def test_execution_details_round_trip(self) -> None:
        execution_id = self.db.start_execution("2026-10-19T12:00:00+00:00", {"local_hour": 9})
        self.db.finish_execution(execution_id, "completed", 2, 3, 0, {"local_hour": 9, "results": []})

        execution = self.db.get_execution(execution_id)
        self.assertEqual(execution["status"], "completed")
        self.assertEqual(execution["details"]["local_hour"], 9)

    def test_api_tokens_are_stored_hashed(self) -> None:
        self.db.add_api_token("user-1", "secret-token")

        self.assertEqual(self.db.get_user_id_for_token("secret-token"), "user-1")
        self.assertIsNone(self.db.get_user_id_for_token("other"))


if __name__ == "__main__":
    unittest.main()
