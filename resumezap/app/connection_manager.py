from __future__ import annotations

import logging
import secrets
import sqlite3
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from resumezap.app.ingest.timestamps import dig
from resumezap.app.messages import msg
from resumezap.clients.evolution_client import EvolutionClient
from resumezap.core.errors import (
    ConflictError,
    ConnectionUnavailableError,
    GatewayError,
    NotFoundError,
    ValidationError,
)
from resumezap.storage.database import Database


LOGGER = logging.getLogger(__name__)

STATUS_CONNECTING = "connecting"
STATUS_CONNECTED = "connected"
STATUS_EXPIRED = "expired"
STATUS_DISCONNECTED = "disconnected"

MODE_TEMPORARY = "temporary"
MODE_PERSISTENT = "persistent"
CONNECTION_MODES = (MODE_TEMPORARY, MODE_PERSISTENT)

TERMINAL_STATUSES = (STATUS_EXPIRED, STATUS_DISCONNECTED)

QR_PREFIX = "data:image/png;base64,"

STATE_PATHS: tuple[tuple[str, ...], ...] = (
    ("state",),
    ("connectionState",),
    ("instance", "state"),
    ("instance", "connectionState"),
    ("response", "state"),
    ("response", "connectionState"),
)

OWNER_PATHS: tuple[tuple[str, ...], ...] = (
    ("instance", "owner"),
    ("owner",),
    ("response", "owner"),
)


def extract_qr(data: Any) -> str | None:
    for path in (("base64",), ("code",), ("qrcode", "base64")):
        value = dig(data, path)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def ensure_base64(qr_code: str) -> str:
    return qr_code if qr_code.startswith(QR_PREFIX) else f"{QR_PREFIX}{qr_code}"


def resolve_state(data: Any) -> str | None:
    for path in STATE_PATHS:
        value = dig(data, path)
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
    return None


def resolve_owner(data: Any) -> str | None:
    for path in OWNER_PATHS:
        value = dig(data, path)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def is_open_state(state: str | None) -> bool:
    return state in ("open", "connected")


def generate_instance_name(user_id: str) -> str:
    millis = int(time.time() * 1000)
    return f"resumezap_{user_id[:8]}_{millis}_{secrets.token_hex(3)}"


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ConnectionManager:
    """QR pairing state machine over the ``connections`` table.

    A user has at most one ``connecting``/``connected`` row; the database
    enforces it, so a new pairing claims its row before any gateway instance
    is created. Losing a claim means another request is already pairing.
    """

    def __init__(
        self,
        db: Database,
        evolution: EvolutionClient,
        qr_ttl_seconds: int = 60,
        sweep_grace_seconds: int = 120,
        connect_attempts: int = 10,
        connect_interval_seconds: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.evolution = evolution
        self.qr_ttl = timedelta(seconds=qr_ttl_seconds)
        self.sweep_grace = timedelta(seconds=sweep_grace_seconds)
        self.connect_attempts = max(1, connect_attempts)
        self.connect_interval_seconds = connect_interval_seconds
        self._sleep = sleep

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    # Pairing

    def request_pairing(self, user_id: str, connection_type: str = MODE_PERSISTENT) -> dict[str, Any]:
        if connection_type not in CONNECTION_MODES:
            raise ValidationError(msg("error_connection_type", allowed=", ".join(CONNECTION_MODES)))
        now = self._now()
        self.db.upsert_profile(user_id)

        swept = self.db.sweep_expired_connecting(user_id, (now - self.sweep_grace).isoformat())
        if swept:
            LOGGER.info("Swept %s stale pairing attempts for user %s", swept, user_id)

        active = self.db.get_active_connection(user_id)
        if active is not None and active["status"] == STATUS_CONNECTED:
            return self._already_connected(active)

        if active is not None and active["status"] == STATUS_CONNECTING:
            expires_at = _parse_iso(active["qr_code_expires_at"])
            if expires_at is not None and expires_at > now:
                if not active["qr_code"]:
                    return self._in_progress(user_id)
                LOGGER.info("Reusing valid QR for user %s instance %s", user_id, active["instance_id"])
                return self._qr_response(active["instance_id"], active["qr_code"], active["qr_code_expires_at"], "reused_qr")

            refreshed = self._refresh_qr(active)
            if refreshed is not None:
                return refreshed

        return self._create_instance(user_id, connection_type)

    def _refresh_qr(self, row: sqlite3.Row) -> dict[str, Any] | None:
        instance_id = row["instance_id"]
        try:
            data = self.evolution.connect(row["instance_name"])
        except GatewayError as exc:
            if exc.instance_not_found:
                LOGGER.info("Instance %s vanished from the gateway, retiring its row", instance_id)
                self.db.set_connection_status(row["id"], STATUS_DISCONNECTED)
            else:
                LOGGER.warning("QR refresh failed for %s: %s", instance_id, exc)
            return None

        qr_code = extract_qr(data)
        if not qr_code:
            LOGGER.warning("QR refresh for %s returned no QR code", instance_id)
            return None

        expires_at = (self._now() + self.qr_ttl).isoformat()
        self.db.update_connection_qr(row["id"], qr_code, expires_at)
        LOGGER.info("Refreshed QR for instance %s", instance_id)
        return self._qr_response(instance_id, qr_code, expires_at, "refreshed_qr")

    def _create_instance(self, user_id: str, connection_type: str) -> dict[str, Any]:
        retired = self.db.disconnect_open_connections(user_id)
        if retired:
            LOGGER.info("Retired %s previous connections for user %s", retired, user_id)

        instance_name = generate_instance_name(user_id)
        expires_at = (self._now() + self.qr_ttl).isoformat()
        connection_id = self.db.claim_connecting_connection(user_id, instance_name, expires_at, connection_type)
        if connection_id is None:
            LOGGER.info("Concurrent pairing already in progress for user %s", user_id)
            return self._in_progress(user_id)

        LOGGER.info("Creating gateway instance %s for user %s", instance_name, user_id)
        try:
            created = self.evolution.create_instance(instance_name)
            connected = self.evolution.connect(instance_name)
        except GatewayError:
            self.db.set_connection_status(connection_id, STATUS_DISCONNECTED)
            raise

        qr_code = extract_qr(connected) or extract_qr(created)
        if not qr_code:
            self.db.set_connection_status(connection_id, STATUS_DISCONNECTED)
            raise GatewayError(msg("error_qr_missing"), payload=connected)

        expires_at = (self._now() + self.qr_ttl).isoformat()
        self.db.update_connection_qr(connection_id, qr_code, expires_at)
        return self._qr_response(instance_name, qr_code, expires_at, "new_instance")

    def _in_progress(self, user_id: str) -> dict[str, Any]:
        winner = self.db.get_active_connection(user_id)
        if winner is None:
            raise ConflictError("Pairing state changed concurrently, retry the request")
        if winner["status"] == STATUS_CONNECTED:
            return self._already_connected(winner)
        if winner["qr_code"]:
            return self._qr_response(winner["instance_id"], winner["qr_code"], winner["qr_code_expires_at"], "reused_qr")
        return {
            "success": True,
            "connected": False,
            "instanceId": winner["instance_id"],
            "qrCode": None,
            "expiresAt": winner["qr_code_expires_at"],
            "reason": "pairing_in_progress",
        }

    @staticmethod
    def _already_connected(row: sqlite3.Row) -> dict[str, Any]:
        return {"success": True, "connected": True, "instanceId": row["instance_id"], "reason": "already_connected"}

    @staticmethod
    def _qr_response(instance_id: str, qr_code: str, expires_at: str, reason: str) -> dict[str, Any]:
        return {
            "success": True,
            "connected": False,
            "qrCode": ensure_base64(qr_code),
            "instanceId": instance_id,
            "expiresAt": expires_at,
            "reason": reason,
        }

    # Status, archival, disconnect

    def poll_status(self, user_id: str, instance_id: str) -> dict[str, Any]:
        row = self.db.get_connection_by_instance(user_id, instance_id)
        if row is None:
            raise NotFoundError(msg("error_instance_not_found", instance_id=instance_id))
        if row["status"] in TERMINAL_STATUSES:
            return self._status_response(row)

        data = self.evolution.connection_state(row["instance_name"])
        state = resolve_state(data)
        status = STATUS_CONNECTED if is_open_state(state) else STATUS_CONNECTING
        phone_number = resolve_owner(data) if status == STATUS_CONNECTED else None
        LOGGER.info("Instance %s reports state=%s -> %s", instance_id, state, status)

        row = self.db.record_polled_status(user_id, instance_id, status, phone_number)
        if row is None:
            raise NotFoundError(msg("error_instance_not_found", instance_id=instance_id))
        if row["status"] == STATUS_CONNECTED:
            self.db.set_whatsapp_connected(user_id, True, instance_id)
        return self._status_response(row)

    @staticmethod
    def _status_response(row: sqlite3.Row) -> dict[str, Any]:
        return {"success": True, "status": row["status"], "phoneNumber": row["phone_number"]}

    def archive(self, user_id: str, instance_id: str, reason: str) -> dict[str, Any]:
        profile = self.db.get_profile(user_id)
        groups_count = int(profile["selected_groups_count"]) if profile is not None else 0
        summaries_count = int(profile["total_summaries_generated"]) if profile is not None else 0

        if not self.db.set_instance_status(user_id, instance_id, STATUS_EXPIRED):
            LOGGER.warning("Archive requested for unknown instance %s of user %s", instance_id, user_id)
        self.db.add_connection_history(user_id, instance_id, reason, groups_count, summaries_count)
        if profile is not None:
            self.db.set_whatsapp_connected(user_id, False)

        LOGGER.info("Archived instance %s for user %s (%s)", instance_id, user_id, reason)
        return {"success": True, "archivedGroups": groups_count, "archivedSummaries": summaries_count}

    def disconnect(self, user_id: str, instance_id: str) -> dict[str, Any]:
        row = self.db.get_connection_by_instance(user_id, instance_id)
        instance_name = row["instance_name"] if row is not None else instance_id

        for action, call in (("logout", self.evolution.logout), ("delete", self.evolution.delete_instance)):
            try:
                call(instance_name)
            except GatewayError as exc:
                LOGGER.warning("Gateway %s failed for %s: %s", action, instance_name, exc)

        self.db.set_instance_status(user_id, instance_id, STATUS_DISCONNECTED)
        self.db.clear_whatsapp_instance(user_id)
        LOGGER.info("Disconnected instance %s for user %s", instance_id, user_id)
        return {"success": True}

    # Scheduled runs

    def ensure_session(self, user_id: str, connection: sqlite3.Row, connection_mode: str | None) -> None:
        """Make sure the gateway session behind ``connection`` is open.

        Persistent sessions must already be open. Temporary sessions are
        reconnected and polled up to ``connect_attempts`` times. A session the
        gateway no longer knows is archived. Raises
        ``ConnectionUnavailableError`` when no open session can be obtained.
        """
        instance_name = connection["instance_name"]
        try:
            state = resolve_state(self.evolution.connection_state(instance_name))
            if is_open_state(state):
                self._session_ready(connection)
                return

            if (connection_mode or MODE_PERSISTENT) != MODE_TEMPORARY:
                raise ConnectionUnavailableError(f"Session {instance_name} is not open (state={state})")

            LOGGER.info("Reconnecting temporary session %s", instance_name)
            self.evolution.connect(instance_name)
            for _ in range(self.connect_attempts):
                self._sleep(self.connect_interval_seconds)
                if is_open_state(resolve_state(self.evolution.connection_state(instance_name))):
                    self._session_ready(connection)
                    return
        except GatewayError as exc:
            if exc.instance_not_found:
                self.archive(user_id, connection["instance_id"], "instance_not_found")
            raise ConnectionUnavailableError(f"Gateway session {instance_name} unavailable: {exc}") from exc

        raise ConnectionUnavailableError(
            f"Temporary session {instance_name} did not open after {self.connect_attempts} attempts"
        )

    def _session_ready(self, connection: sqlite3.Row) -> None:
        instance_name = connection["instance_name"]
        try:
            self.evolution.set_offline_settings(instance_name)
            self.evolution.set_presence_unavailable(instance_name)
        except GatewayError as exc:
            LOGGER.warning("Could not apply offline presence for %s: %s", instance_name, exc)
        self.db.touch_last_connected(connection["id"])

    def release_session(self, connection: sqlite3.Row) -> None:
        try:
            self.evolution.set_presence_unavailable(connection["instance_name"])
        except GatewayError as exc:
            LOGGER.warning("Could not restore offline presence for %s: %s", connection["instance_name"], exc)
