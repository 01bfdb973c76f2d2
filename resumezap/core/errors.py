from __future__ import annotations

from typing import Any


class ResumeZapError(Exception):
    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(ResumeZapError):
    http_status = 500


class AuthError(ResumeZapError):
    http_status = 401


class ValidationError(ResumeZapError):
    http_status = 400


class NotFoundError(ResumeZapError):
    http_status = 404


class ConflictError(ResumeZapError):
    http_status = 409


class ConnectionUnavailableError(ResumeZapError):
    """No usable gateway session for the user."""

    http_status = 409


class GatewayError(ResumeZapError):
    """Non-2xx or unreadable response from the messaging gateway."""

    http_status = 502

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload

    @property
    def instance_not_found(self) -> bool:
        if self.status_code == 404:
            return True
        text = str(self.payload or "").lower()
        return "does not exist" in text or "not found" in text


class AIGenerationError(ResumeZapError):
    http_status = 502


class DeliveryError(ResumeZapError):
    http_status = 502
