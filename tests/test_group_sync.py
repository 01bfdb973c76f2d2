from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from resumezap.app.group_sync import GroupSync, normalize_group
from resumezap.core.errors import ConnectionUnavailableError
from resumezap.storage.database import Database


def _connected(db: Database, user_id: str, instance_id: str):
    expires = (datetime.now(timezone.utc) + timedelta(seconds=60)).isoformat()
    db.claim_connecting_connection(user_id, instance_id, expires)
    return db.record_polled_status(user_id, instance_id, "connected")


USER = "user-1"


class _FakeEvolution:
    def __init__(self, groups) -> None:
        self.groups = groups

    def fetch_all_groups(self, instance_name: str):
        return self.groups


class GroupSyncTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db = Database(str(Path(self._tmp.name) / "resumezap.db"))
        self.db.upsert_profile(USER)
        _connected(self.db, USER, "inst-1")

    def tearDown(self) -> None:
        self.db.close()
        self._tmp.cleanup()

    def test_normalize_group(self) -> None:
        group = normalize_group({"id": "g1@g.us", "subject": " ", "participants": [{}, {}], "pictureUrl": "http://x"})
        self.assertEqual(
            group,
            {"group_id": "g1@g.us", "group_name": "Sem nome", "group_image": "http://x", "participant_count": 2},
        )
        self.assertEqual(normalize_group({"id": "g2@g.us", "subject": "Dois", "size": "7"})["participant_count"], 7)
        self.assertIsNone(normalize_group({"subject": "sem id"}))

    def test_sync_archives_groups_that_disappeared(self) -> None:
        GroupSync(self.db, _FakeEvolution([{"id": "g1", "subject": "Um"}, {"id": "g2", "subject": "Dois"}])).sync_groups(USER)
        self.db.set_group_selected(USER, "g1", True)

        result = GroupSync(self.db, _FakeEvolution({"data": [{"id": "g1", "subject": "Um"}]})).sync_groups(USER)

        self.assertEqual(result["archived"], 1)
        self.assertEqual([group["group_id"] for group in result["groups"]], ["g1"])
        self.assertEqual(result["groups"][0]["is_selected"], 1)

    def test_empty_gateway_list_leaves_groups_alone(self) -> None:
        GroupSync(self.db, _FakeEvolution([{"id": "g1", "subject": "Um"}])).sync_groups(USER)

        result = GroupSync(self.db, _FakeEvolution([])).sync_groups(USER)

        self.assertEqual(result["groups"], [])
        self.assertEqual(result["message"], "Nenhum grupo encontrado")
        self.assertEqual(self.db.list_groups(USER)[0]["archived"], 0)

    def test_requires_connection(self) -> None:
        self.db.set_instance_status(USER, "inst-1", "disconnected")
        with self.assertRaises(ConnectionUnavailableError):
            GroupSync(self.db, _FakeEvolution([])).sync_groups(USER)


if __name__ == "__main__":
    unittest.main()
