from __future__ import annotations

import asyncio
import hmac
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from resumezap.app.history import cleanup_user_history
from resumezap.app.messages import msg
from resumezap.core.errors import AuthError, ResumeZapError, ValidationError

if TYPE_CHECKING:
    from resumezap.app.orchestrator import ResumeZapService


LOGGER = logging.getLogger(__name__)


class PairingRequest(BaseModel):
    connectionType: Optional[str] = None


class InstanceRequest(BaseModel):
    instanceId: Optional[str] = None


class ArchiveRequest(BaseModel):
    userId: Optional[str] = None
    instanceId: Optional[str] = None
    reason: str = "session_lost"


class SummaryRequest(BaseModel):
    summaryId: Optional[int] = None


class ScheduledRunRequest(BaseModel):
    simulatedHour: Optional[int] = None


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthError(msg("error_unauthorized"))
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError(msg("error_unauthorized"))
    return token.strip()


def _require_instance(payload: Optional[InstanceRequest]) -> str:
    instance_id = (payload.instanceId if payload else None) or ""
    if not instance_id.strip():
        raise ValidationError(msg("error_missing_instance"))
    return instance_id.strip()


def _require_summary(payload: Optional[SummaryRequest]) -> int:
    if payload is None or payload.summaryId is None:
        raise ValidationError(msg("error_missing_summary"))
    return int(payload.summaryId)


def create_app(service: "ResumeZapService", lifespan: Optional[Callable[[FastAPI], Any]] = None) -> FastAPI:
    app = FastAPI(title="Resume Zap API", description="WhatsApp group summaries", version="1.0.0", lifespan=lifespan)

    def is_service_token(token: str) -> bool:
        return hmac.compare_digest(token, service.settings.service_role_key)

    async def current_user(authorization: Optional[str] = Header(None)) -> str:
        token = _bearer_token(authorization)
        user_id = await asyncio.to_thread(service.db.get_user_id_for_token, token)
        if not user_id:
            LOGGER.warning("Rejected request with unknown bearer token")
            raise AuthError(msg("error_unauthorized"))
        return user_id

    async def service_caller(authorization: Optional[str] = Header(None)) -> None:
        if not is_service_token(_bearer_token(authorization)):
            LOGGER.warning("Rejected service request with invalid key")
            raise AuthError(msg("error_unauthorized"))

    async def user_or_service(
        authorization: Optional[str] = Header(None),
        x_user_id: Optional[str] = Header(None),
    ) -> str:
        token = _bearer_token(authorization)
        if is_service_token(token):
            if not x_user_id or not x_user_id.strip():
                raise ValidationError("x-user-id header is required for service calls")
            return x_user_id.strip()
        return await current_user(authorization)

    @app.exception_handler(ResumeZapError)
    async def resumezap_error_handler(_request: Request, exc: ResumeZapError) -> JSONResponse:
        if exc.http_status >= 500:
            LOGGER.error("%s: %s", type(exc).__name__, exc.message)
        return JSONResponse(status_code=exc.http_status, content={"success": False, "error": exc.message})

    @app.get("/health")
    async def health() -> dict:
        return {"status": "healthy", "service": "resumezap"}

    @app.post("/generate-qr-code")
    async def generate_qr_code(payload: Optional[PairingRequest] = None, user_id: str = Depends(current_user)) -> dict:
        connection_type = payload.connectionType if payload else None
        if not connection_type:
            profile = await asyncio.to_thread(service.db.get_profile, user_id)
            connection_type = profile["connection_mode"] if profile is not None else "persistent"
        return await asyncio.to_thread(service.connections.request_pairing, user_id, connection_type)

    @app.post("/check-whatsapp-status")
    async def check_whatsapp_status(
        payload: Optional[InstanceRequest] = None,
        user_id: str = Depends(current_user),
    ) -> dict:
        return await asyncio.to_thread(service.connections.poll_status, user_id, _require_instance(payload))

    @app.post("/disconnect-whatsapp")
    async def disconnect_whatsapp(
        payload: Optional[InstanceRequest] = None,
        user_id: str = Depends(current_user),
    ) -> dict:
        return await asyncio.to_thread(service.connections.disconnect, user_id, _require_instance(payload))

    @app.post("/archive-connection", dependencies=[Depends(service_caller)])
    async def archive_connection(payload: ArchiveRequest) -> dict:
        if not payload.userId or not payload.instanceId:
            raise ValidationError("userId and instanceId are required")
        return await asyncio.to_thread(service.connections.archive, payload.userId, payload.instanceId, payload.reason)

    @app.post("/fetch-groups")
    async def fetch_groups(user_id: str = Depends(current_user)) -> dict:
        return await asyncio.to_thread(service.group_sync.sync_groups, user_id)

    @app.post("/generate-summaries")
    async def generate_summaries(user_id: str = Depends(user_or_service)) -> dict:
        result = await asyncio.to_thread(service.generator.generate_for_user, user_id)
        return result.as_dict()

    @app.post("/scheduled-summaries", dependencies=[Depends(service_caller)])
    async def scheduled_summaries(payload: Optional[ScheduledRunRequest] = None) -> dict:
        simulated_hour = payload.simulatedHour if payload else None
        return await asyncio.to_thread(service.runner.run, simulated_hour)

    @app.post("/send-group-summary", dependencies=[Depends(service_caller)])
    async def send_group_summary(payload: Optional[SummaryRequest] = None) -> dict:
        outcome = await asyncio.to_thread(service.dispatcher.dispatch_by_id, _require_summary(payload))
        return {"success": outcome.sent, "status": outcome.status, "messageId": outcome.message_id}

    @app.post("/manual-send-summary")
    async def manual_send_summary(
        payload: Optional[SummaryRequest] = None,
        user_id: str = Depends(current_user),
    ) -> dict:
        outcome = await asyncio.to_thread(service.dispatcher.manual_send, user_id, _require_summary(payload))
        return {"success": True, "status": outcome.status, "messageId": outcome.message_id}

    @app.post("/cleanup-user-data")
    async def cleanup_user_data(user_id: str = Depends(current_user)) -> dict:
        return await asyncio.to_thread(cleanup_user_history, service.db, user_id)

    return app
