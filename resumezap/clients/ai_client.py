from __future__ import annotations

import logging
from typing import Any

import requests

from resumezap.core.errors import AIGenerationError


LOGGER = logging.getLogger(__name__)


class AiGatewayClient:
    def __init__(self, api_url: str, api_key: str, request_timeout_seconds: int = 60):
        self.api_url = api_url
        self.api_key = api_key
        self.request_timeout_seconds = max(5, int(request_timeout_seconds))

    def chat(self, model: str, system_prompt: str, user_prompt: str) -> str:
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        try:
            response = requests.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
                timeout=self.request_timeout_seconds,
            )
        except requests.RequestException as exc:
            raise AIGenerationError(f"AI gateway request failed: {exc}") from exc

        if not response.ok:
            LOGGER.warning("AI gateway returned HTTP %s for model %s: %s", response.status_code, model, response.text[:500])
            raise AIGenerationError(f"AI gateway returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise AIGenerationError("AI gateway returned a non-JSON body") from exc

        text = _first_choice_text(data)
        if not text:
            raise AIGenerationError("AI gateway returned an empty completion")
        return text


def _first_choice_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message") or {}
    return str(message.get("content") or "").strip()
