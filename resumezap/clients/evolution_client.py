from __future__ import annotations

import logging
from typing import Any

import requests

from resumezap.core.errors import GatewayError


LOGGER = logging.getLogger(__name__)


class EvolutionClient:
    """Thin wrapper over the Evolution API endpoints the pipeline consumes."""

    def __init__(self, base_url: str, api_key: str, request_timeout_seconds: int = 60):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.request_timeout_seconds = max(5, int(request_timeout_seconds))

    def create_instance(self, instance_name: str) -> dict[str, Any]:
        return self._request(
            "POST",
            "/instance/create",
            json={"instanceName": instance_name, "integration": "WHATSAPP-BAILEYS", "qrcode": True},
        )

    def connect(self, instance_name: str) -> dict[str, Any]:
        return self._request("GET", f"/instance/connect/{instance_name}")

    def connection_state(self, instance_name: str) -> dict[str, Any]:
        return self._request("GET", f"/instance/connectionState/{instance_name}")

    def logout(self, instance_name: str) -> dict[str, Any]:
        return self._request("DELETE", f"/instance/logout/{instance_name}")

    def delete_instance(self, instance_name: str) -> dict[str, Any]:
        return self._request("DELETE", f"/instance/delete/{instance_name}")

    def find_messages(self, instance_name: str, where: dict[str, Any] | None = None, limit: int = 500) -> Any:
        body: dict[str, Any] = {"limit": int(limit)}
        if where:
            body["where"] = where
        return self._request("POST", f"/chat/findMessages/{instance_name}", json=body)

    def send_text(self, instance_name: str, number: str, text: str) -> dict[str, Any]:
        return self._request("POST", f"/message/sendText/{instance_name}", json={"number": number, "text": text})

    def fetch_all_groups(self, instance_name: str) -> Any:
        return self._request(
            "GET",
            f"/group/fetchAllGroups/{instance_name}",
            params={"getParticipants": "true"},
        )

    def set_offline_settings(self, instance_name: str) -> dict[str, Any]:
        return self._request(
            "POST",
            f"/settings/set/{instance_name}",
            json={"markOnlineOnConnect": False, "alwaysOnline": False},
        )

    def set_presence_unavailable(self, instance_name: str) -> dict[str, Any]:
        return self._request("POST", f"/chat/updatePresence/{instance_name}", json={"presence": "unavailable"})

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                headers={"apikey": self.api_key, "Content-Type": "application/json"},
                timeout=self.request_timeout_seconds,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"{method} {path} failed: {exc}") from exc

        payload = _decode(response)
        if not response.ok:
            LOGGER.warning("Evolution API %s %s returned HTTP %s: %s", method, path, response.status_code, payload)
            raise GatewayError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                payload=payload,
            )
        return payload


def _decode(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
