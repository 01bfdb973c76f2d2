import hashlib
import json
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any, Iterable


TERMINAL_CONNECTION_STATUSES = ("expired", "disconnected")

PROFILE_FIELDS = {
    "whatsapp_connected",
    "whatsapp_instance_id",
    "preferred_summary_time",
    "connection_mode",
    "send_summary_to_group",
    "subscription_plan",
    "selected_groups_count",
    "total_summaries_generated",
}

PREFERENCE_FIELDS = {
    "timezone",
    "tone",
    "size",
    "thematic_focus",
    "include_sentiment_analysis",
    "enterprise_detail_level",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class Database:
    def __init__(self, db_path: str):
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._lock:
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA foreign_keys=ON;")
        self._init_schema()

    def _init_schema(self) -> None:
        statements = [
            """
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                whatsapp_connected INTEGER NOT NULL DEFAULT 0,
                whatsapp_instance_id TEXT,
                preferred_summary_time TEXT,
                connection_mode TEXT NOT NULL DEFAULT 'persistent',
                send_summary_to_group INTEGER NOT NULL DEFAULT 0,
                subscription_plan TEXT NOT NULL DEFAULT 'free',
                selected_groups_count INTEGER NOT NULL DEFAULT 0,
                total_summaries_generated INTEGER NOT NULL DEFAULT 0,
                updated_at_utc TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS summary_preferences (
                user_id TEXT PRIMARY KEY,
                timezone TEXT DEFAULT 'America/Sao_Paulo',
                tone TEXT DEFAULT 'professional',
                size TEXT DEFAULT 'medium',
                thematic_focus TEXT,
                include_sentiment_analysis INTEGER NOT NULL DEFAULT 0,
                enterprise_detail_level TEXT DEFAULT 'full',
                updated_at_utc TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(user_id) REFERENCES profiles(id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS api_tokens (
                token_hash TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                created_at_utc TEXT NOT NULL,
                FOREIGN KEY(user_id) REFERENCES profiles(id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS connections (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                instance_id TEXT NOT NULL,
                instance_name TEXT NOT NULL,
                status TEXT NOT NULL,
                qr_code TEXT,
                qr_code_expires_at TEXT,
                connected_at TEXT,
                last_connected_at TEXT,
                phone_number TEXT,
                connection_type TEXT NOT NULL DEFAULT 'persistent',
                created_at_utc TEXT NOT NULL,
                updated_at_utc TEXT NOT NULL,
                UNIQUE(instance_id),
                FOREIGN KEY(user_id) REFERENCES profiles(id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS groups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                group_id TEXT NOT NULL,
                group_name TEXT NOT NULL,
                group_image TEXT,
                is_selected INTEGER NOT NULL DEFAULT 0,
                archived INTEGER NOT NULL DEFAULT 0,
                archived_at_utc TEXT,
                participant_count INTEGER NOT NULL DEFAULT 0,
                last_activity_utc TEXT,
                updated_at_utc TEXT NOT NULL,
                UNIQUE(user_id, group_id),
                FOREIGN KEY(user_id) REFERENCES profiles(id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS summaries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                group_id TEXT NOT NULL,
                group_name TEXT NOT NULL,
                summary_text TEXT NOT NULL,
                message_count INTEGER NOT NULL DEFAULT 0,
                summary_date TEXT NOT NULL,
                created_at_utc TEXT NOT NULL,
                FOREIGN KEY(user_id) REFERENCES profiles(id)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS deliveries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                summary_id INTEGER NOT NULL,
                group_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                evolution_message_id TEXT,
                error_message TEXT,
                sent_at TEXT,
                created_at_utc TEXT NOT NULL,
                updated_at_utc TEXT NOT NULL,
                UNIQUE(summary_id, group_id),
                FOREIGN KEY(summary_id) REFERENCES summaries(id) ON DELETE CASCADE
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS scheduled_executions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                execution_time TEXT NOT NULL,
                status TEXT NOT NULL,
                users_processed INTEGER NOT NULL DEFAULT 0,
                summaries_generated INTEGER NOT NULL DEFAULT 0,
                errors_count INTEGER NOT NULL DEFAULT 0,
                details TEXT NOT NULL DEFAULT '{}'
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS connection_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                instance_id TEXT NOT NULL,
                disconnected_at TEXT NOT NULL,
                reason TEXT NOT NULL,
                groups_count INTEGER NOT NULL DEFAULT 0,
                summaries_count INTEGER NOT NULL DEFAULT 0
            );
            """,
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_connections_one_active
            ON connections(user_id) WHERE status IN ('connecting', 'connected');
            """,
            "CREATE INDEX IF NOT EXISTS idx_connections_user_status ON connections(user_id, status);",
            "CREATE INDEX IF NOT EXISTS idx_summaries_user_date ON summaries(user_id, summary_date);",
            "CREATE INDEX IF NOT EXISTS idx_groups_user_selected ON groups(user_id, is_selected);",
        ]
        with self._lock:
            for stmt in statements:
                self._conn.execute(stmt)
            self._conn.commit()

    def _execute(self, query: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            cursor = self._conn.execute(query, tuple(params))
            self._conn.commit()
            return cursor

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # Profiles, preferences and tokens are owned by the settings/auth surfaces;
    # these writers exist for seeding and for the few flags the core toggles.

    def upsert_profile(self, user_id: str, **fields: Any) -> None:
        unknown = set(fields) - PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {sorted(unknown)}")
        self._execute("INSERT OR IGNORE INTO profiles(id) VALUES (?)", (user_id,))
        if not fields:
            return
        assignments = ", ".join(f"{name} = ?" for name in fields)
        self._execute(
            f"UPDATE profiles SET {assignments}, updated_at_utc = ? WHERE id = ?",
            (*[_to_db(value) for value in fields.values()], _now_iso(), user_id),
        )

    def get_profile(self, user_id: str) -> sqlite3.Row | None:
        return self._execute("SELECT * FROM profiles WHERE id = ?", (user_id,)).fetchone()

    def list_profiles_with_summary_time(self) -> list[sqlite3.Row]:
        return self._execute(
            """
            SELECT id, preferred_summary_time, connection_mode, send_summary_to_group, subscription_plan
            FROM profiles
            WHERE preferred_summary_time IS NOT NULL AND TRIM(preferred_summary_time) != ''
            ORDER BY id
            """
        ).fetchall()

    def set_whatsapp_connected(self, user_id: str, connected: bool, instance_id: str | None = None) -> None:
        if connected:
            self._execute(
                """
                UPDATE profiles
                SET whatsapp_connected = 1, whatsapp_instance_id = ?, updated_at_utc = ?
                WHERE id = ?
                """,
                (instance_id, _now_iso(), user_id),
            )
            return
        self._execute(
            "UPDATE profiles SET whatsapp_connected = 0, updated_at_utc = ? WHERE id = ?",
            (_now_iso(), user_id),
        )

    def clear_whatsapp_instance(self, user_id: str) -> None:
        self._execute(
            """
            UPDATE profiles
            SET whatsapp_connected = 0, whatsapp_instance_id = NULL, updated_at_utc = ?
            WHERE id = ?
            """,
            (_now_iso(), user_id),
        )

    def increment_summaries_generated(self, user_id: str, count: int) -> None:
        if count <= 0:
            return
        self._execute(
            """
            UPDATE profiles
            SET total_summaries_generated = total_summaries_generated + ?, updated_at_utc = ?
            WHERE id = ?
            """,
            (count, _now_iso(), user_id),
        )

    def upsert_preferences(self, user_id: str, **fields: Any) -> None:
        unknown = set(fields) - PREFERENCE_FIELDS
        if unknown:
            raise ValueError(f"Unknown preference fields: {sorted(unknown)}")
        self._execute("INSERT OR IGNORE INTO summary_preferences(user_id) VALUES (?)", (user_id,))
        if not fields:
            return
        assignments = ", ".join(f"{name} = ?" for name in fields)
        self._execute(
            f"UPDATE summary_preferences SET {assignments}, updated_at_utc = ? WHERE user_id = ?",
            (*[_to_db(value) for value in fields.values()], _now_iso(), user_id),
        )

    def get_preferences(self, user_id: str) -> sqlite3.Row | None:
        return self._execute("SELECT * FROM summary_preferences WHERE user_id = ?", (user_id,)).fetchone()

    def add_api_token(self, user_id: str, token: str) -> None:
        self._execute(
            "INSERT OR REPLACE INTO api_tokens(token_hash, user_id, created_at_utc) VALUES (?, ?, ?)",
            (hash_token(token), user_id, _now_iso()),
        )

    def get_user_id_for_token(self, token: str) -> str | None:
        row = self._execute("SELECT user_id FROM api_tokens WHERE token_hash = ?", (hash_token(token),)).fetchone()
        if row is None:
            return None
        return str(row["user_id"])

    # Connections

    def sweep_expired_connecting(self, user_id: str, cutoff_iso: str) -> int:
        cursor = self._execute(
            """
            UPDATE connections
            SET status = 'disconnected', updated_at_utc = ?
            WHERE user_id = ?
              AND status = 'connecting'
              AND qr_code_expires_at IS NOT NULL
              AND qr_code_expires_at < ?
            """,
            (_now_iso(), user_id, cutoff_iso),
        )
        return cursor.rowcount

    def get_active_connection(self, user_id: str) -> sqlite3.Row | None:
        return self._execute(
            """
            SELECT * FROM connections
            WHERE user_id = ? AND status IN ('connecting', 'connected')
            ORDER BY id DESC
            LIMIT 1
            """,
            (user_id,),
        ).fetchone()

    def get_connected_connection(self, user_id: str) -> sqlite3.Row | None:
        return self._execute(
            "SELECT * FROM connections WHERE user_id = ? AND status = 'connected' ORDER BY id DESC LIMIT 1",
            (user_id,),
        ).fetchone()

    def get_connection_by_instance(self, user_id: str, instance_id: str) -> sqlite3.Row | None:
        return self._execute(
            "SELECT * FROM connections WHERE user_id = ? AND instance_id = ?",
            (user_id, instance_id),
        ).fetchone()

    def list_connections(self, user_id: str) -> list[sqlite3.Row]:
        return self._execute("SELECT * FROM connections WHERE user_id = ? ORDER BY id", (user_id,)).fetchall()

    def list_connected_user_ids(self) -> set[str]:
        rows = self._execute("SELECT DISTINCT user_id FROM connections WHERE status = 'connected'").fetchall()
        return {str(row["user_id"]) for row in rows}

    def claim_connecting_connection(
        self,
        user_id: str,
        instance_name: str,
        expires_at_iso: str,
        connection_type: str = "persistent",
    ) -> int | None:
        now = _now_iso()
        try:
            cursor = self._execute(
                """
                INSERT INTO connections(
                    user_id,
                    instance_id,
                    instance_name,
                    status,
                    qr_code_expires_at,
                    connection_type,
                    created_at_utc,
                    updated_at_utc
                ) VALUES (?, ?, ?, 'connecting', ?, ?, ?, ?)
                """,
                (user_id, instance_name, instance_name, expires_at_iso, connection_type, now, now),
            )
        except sqlite3.IntegrityError:
            return None
        return int(cursor.lastrowid)

    def update_connection_qr(self, connection_id: int, qr_code: str, expires_at_iso: str) -> None:
        self._execute(
            """
            UPDATE connections
            SET qr_code = ?, qr_code_expires_at = ?, updated_at_utc = ?
            WHERE id = ?
            """,
            (qr_code, expires_at_iso, _now_iso(), connection_id),
        )

    def set_connection_status(self, connection_id: int, status: str) -> bool:
        cursor = self._execute(
            "UPDATE connections SET status = ?, updated_at_utc = ? WHERE id = ?",
            (status, _now_iso(), connection_id),
        )
        return cursor.rowcount > 0

    def set_instance_status(self, user_id: str, instance_id: str, status: str) -> bool:
        cursor = self._execute(
            "UPDATE connections SET status = ?, updated_at_utc = ? WHERE user_id = ? AND instance_id = ?",
            (status, _now_iso(), user_id, instance_id),
        )
        return cursor.rowcount > 0

    def disconnect_open_connections(self, user_id: str) -> int:
        """Mark the user's rows ``disconnected`` before a new pairing.

        Claims still waiting for their first QR code (``connecting`` with no
        QR and an unexpired window) belong to a concurrent pairing request and
        are left alone.
        """
        now = _now_iso()
        cursor = self._execute(
            """
            UPDATE connections
            SET status = 'disconnected', updated_at_utc = ?
            WHERE user_id = ?
              AND status != 'disconnected'
              AND NOT (status = 'connecting' AND qr_code IS NULL AND qr_code_expires_at >= ?)
            """,
            (now, user_id, now),
        )
        return cursor.rowcount

    def record_polled_status(
        self,
        user_id: str,
        instance_id: str,
        status: str,
        phone_number: str | None = None,
    ) -> sqlite3.Row | None:
        """Apply a polled gateway state to the user's row for ``instance_id``.

        Returns ``None`` when the user owns no such row. ``expired`` and
        ``disconnected`` rows are terminal and come back unchanged.
        ``connected_at`` is stamped only on the transition into ``connected``.
        """
        now = _now_iso()
        with self._lock:
            existing = self._conn.execute(
                "SELECT * FROM connections WHERE user_id = ? AND instance_id = ?",
                (user_id, instance_id),
            ).fetchone()
            if existing is None or existing["status"] in TERMINAL_CONNECTION_STATUSES:
                return existing
            if status == "connected" and existing["status"] != "connected":
                self._conn.execute(
                    """
                    UPDATE connections
                    SET status = 'connected',
                        connected_at = ?,
                        last_connected_at = ?,
                        phone_number = COALESCE(?, phone_number),
                        updated_at_utc = ?
                    WHERE id = ?
                    """,
                    (now, now, phone_number, now, existing["id"]),
                )
            else:
                self._conn.execute(
                    "UPDATE connections SET status = ?, updated_at_utc = ? WHERE id = ?",
                    (status, now, existing["id"]),
                )
            self._conn.commit()
            return self._conn.execute("SELECT * FROM connections WHERE id = ?", (existing["id"],)).fetchone()

    def touch_last_connected(self, connection_id: int) -> None:
        now = _now_iso()
        self._execute(
            "UPDATE connections SET last_connected_at = ?, updated_at_utc = ? WHERE id = ?",
            (now, now, connection_id),
        )

    def add_connection_history(
        self,
        user_id: str,
        instance_id: str,
        reason: str,
        groups_count: int,
        summaries_count: int,
    ) -> int:
        cursor = self._execute(
            """
            INSERT INTO connection_history(user_id, instance_id, disconnected_at, reason, groups_count, summaries_count)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user_id, instance_id, _now_iso(), reason, groups_count, summaries_count),
        )
        return int(cursor.lastrowid)

    def list_connection_history(self, user_id: str) -> list[sqlite3.Row]:
        return self._execute(
            "SELECT * FROM connection_history WHERE user_id = ? ORDER BY id", (user_id,)
        ).fetchall()

    # Groups

    def upsert_groups(self, user_id: str, groups: list[dict[str, Any]]) -> None:
        now = _now_iso()
        with self._lock:
            for group in groups:
                self._conn.execute(
                    """
                    INSERT INTO groups(
                        user_id, group_id, group_name, group_image, participant_count,
                        is_selected, archived, archived_at_utc, updated_at_utc
                    ) VALUES (?, ?, ?, ?, ?, 0, 0, NULL, ?)
                    ON CONFLICT(user_id, group_id) DO UPDATE SET
                        group_name = excluded.group_name,
                        group_image = excluded.group_image,
                        participant_count = excluded.participant_count,
                        archived = 0,
                        archived_at_utc = NULL,
                        updated_at_utc = excluded.updated_at_utc
                    """,
                    (
                        user_id,
                        group["group_id"],
                        group.get("group_name") or "",
                        group.get("group_image"),
                        int(group.get("participant_count") or 0),
                        now,
                    ),
                )
            self._conn.commit()

    def archive_missing_groups(self, user_id: str, present_group_ids: list[str]) -> int:
        placeholders = ", ".join("?" for _ in present_group_ids)
        query = "UPDATE groups SET archived = 1, archived_at_utc = ?, updated_at_utc = ? WHERE user_id = ? AND archived = 0"
        params: list[Any] = [_now_iso(), _now_iso(), user_id]
        if present_group_ids:
            query += f" AND group_id NOT IN ({placeholders})"
            params.extend(present_group_ids)
        return self._execute(query, params).rowcount

    def set_group_selected(self, user_id: str, group_id: str, selected: bool) -> bool:
        cursor = self._execute(
            "UPDATE groups SET is_selected = ?, updated_at_utc = ? WHERE user_id = ? AND group_id = ?",
            (1 if selected else 0, _now_iso(), user_id, group_id),
        )
        self._execute(
            """
            UPDATE profiles
            SET selected_groups_count = (
                SELECT COUNT(*) FROM groups WHERE user_id = ? AND is_selected = 1 AND archived = 0
            )
            WHERE id = ?
            """,
            (user_id, user_id),
        )
        return cursor.rowcount > 0

    def touch_group_activity(self, user_id: str, group_id: str, last_activity_iso: str) -> None:
        self._execute(
            "UPDATE groups SET last_activity_utc = ? WHERE user_id = ? AND group_id = ?",
            (last_activity_iso, user_id, group_id),
        )

    def list_groups(self, user_id: str) -> list[sqlite3.Row]:
        return self._execute("SELECT * FROM groups WHERE user_id = ? ORDER BY group_name", (user_id,)).fetchall()

    def list_selected_groups(self, user_id: str) -> list[sqlite3.Row]:
        return self._execute(
            """
            SELECT * FROM groups
            WHERE user_id = ? AND is_selected = 1 AND archived = 0
            ORDER BY group_name
            """,
            (user_id,),
        ).fetchall()

    # Summaries

    def create_summary(
        self,
        user_id: str,
        group_id: str,
        group_name: str,
        summary_text: str,
        message_count: int,
        summary_date: str,
    ) -> int:
        cursor = self._execute(
            """
            INSERT INTO summaries(user_id, group_id, group_name, summary_text, message_count, summary_date, created_at_utc)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (user_id, group_id, group_name, summary_text, message_count, summary_date, _now_iso()),
        )
        return int(cursor.lastrowid)

    def get_summary(self, summary_id: int) -> sqlite3.Row | None:
        return self._execute("SELECT * FROM summaries WHERE id = ?", (summary_id,)).fetchone()

    def get_summary_for_user(self, summary_id: int, user_id: str) -> sqlite3.Row | None:
        return self._execute(
            "SELECT * FROM summaries WHERE id = ? AND user_id = ?", (summary_id, user_id)
        ).fetchone()

    def list_summaries(self, user_id: str, summary_date: str | None = None) -> list[sqlite3.Row]:
        if summary_date:
            return self._execute(
                "SELECT * FROM summaries WHERE user_id = ? AND summary_date = ? ORDER BY id",
                (user_id, summary_date),
            ).fetchall()
        return self._execute("SELECT * FROM summaries WHERE user_id = ? ORDER BY id", (user_id,)).fetchall()

    def delete_user_history(self, user_id: str) -> tuple[int, int]:
        with self._lock:
            deliveries = self._conn.execute("DELETE FROM deliveries WHERE user_id = ?", (user_id,)).rowcount
            summaries = self._conn.execute("DELETE FROM summaries WHERE user_id = ?", (user_id,)).rowcount
            self._conn.execute(
                "UPDATE profiles SET total_summaries_generated = 0, updated_at_utc = ? WHERE id = ?",
                (_now_iso(), user_id),
            )
            self._conn.commit()
        return deliveries, summaries

    # Deliveries

    def get_delivery(self, summary_id: int, group_id: str) -> sqlite3.Row | None:
        return self._execute(
            "SELECT * FROM deliveries WHERE summary_id = ? AND group_id = ?",
            (summary_id, group_id),
        ).fetchone()

    def claim_delivery(self, summary_id: int, group_id: str, user_id: str) -> bool:
        """Reserve ``(summary_id, group_id)``; False when another run owns it."""
        now = _now_iso()
        cursor = self._execute(
            """
            INSERT OR IGNORE INTO deliveries(summary_id, group_id, user_id, status, created_at_utc, updated_at_utc)
            VALUES (?, ?, ?, 'sending', ?, ?)
            """,
            (summary_id, group_id, user_id, now, now),
        )
        return cursor.rowcount > 0

    def finish_delivery(
        self,
        summary_id: int,
        group_id: str,
        status: str,
        evolution_message_id: str | None = None,
        error_message: str | None = None,
    ) -> None:
        now = _now_iso()
        self._execute(
            """
            UPDATE deliveries
            SET status = ?,
                evolution_message_id = ?,
                error_message = ?,
                sent_at = ?,
                updated_at_utc = ?
            WHERE summary_id = ? AND group_id = ?
            """,
            (
                status,
                evolution_message_id,
                error_message,
                now if status == "sent" else None,
                now,
                summary_id,
                group_id,
            ),
        )

    def list_deliveries(self, user_id: str) -> list[sqlite3.Row]:
        return self._execute("SELECT * FROM deliveries WHERE user_id = ? ORDER BY id", (user_id,)).fetchall()

    # Scheduled executions

    def start_execution(self, execution_time_iso: str, details: dict[str, Any]) -> int:
        cursor = self._execute(
            """
            INSERT INTO scheduled_executions(execution_time, status, details)
            VALUES (?, 'running', ?)
            """,
            (execution_time_iso, json.dumps(details)),
        )
        return int(cursor.lastrowid)

    def finish_execution(
        self,
        execution_id: int,
        status: str,
        users_processed: int,
        summaries_generated: int,
        errors_count: int,
        details: dict[str, Any],
    ) -> None:
        self._execute(
            """
            UPDATE scheduled_executions
            SET status = ?, users_processed = ?, summaries_generated = ?, errors_count = ?, details = ?
            WHERE id = ?
            """,
            (status, users_processed, summaries_generated, errors_count, json.dumps(details, default=str), execution_id),
        )

    def get_execution(self, execution_id: int) -> dict[str, Any] | None:
        row = self._execute("SELECT * FROM scheduled_executions WHERE id = ?", (execution_id,)).fetchone()
        if row is None:
            return None
        data = dict(row)
        data["details"] = json.loads(data.get("details") or "{}")
        return data

    def list_executions(self) -> list[sqlite3.Row]:
        return self._execute("SELECT * FROM scheduled_executions ORDER BY id").fetchall()


def _to_db(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    return value
