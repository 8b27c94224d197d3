"""Superbot webhook routes.

Security:
- Signature (X-Superbot-Signature) verified over the raw body in production
- Phones and message text are never logged raw
"""

import json
from typing import Any

from fastapi import APIRouter, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from leadwire.api.auth import CurrentUser, CurrentUserDep
from leadwire.observability.correlation import get_correlation_id
from leadwire.observability.logging import get_logger
from leadwire.observability.redaction import safe_log_context
from leadwire.services.ingestion import InvalidSignatureError
from leadwire.services.wiring import get_pipeline
from leadwire.whatsapp.superbot_adapter import InvalidPayloadError

router = APIRouter(prefix="/webhooks/superbot", tags=["webhooks"])

logger = get_logger(__name__)

DEFAULT_TEST_MESSAGE = "Olá, gostaria de uma cotação de rolamentos 6204"


class SimulateRequest(BaseModel):
    """Request body for the simulated message endpoint."""

    message: str | None = None
    phone: str | None = None


def _error(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@router.post("")
async def superbot_webhook(
    request: Request,
    x_superbot_signature: str | None = Header(None, alias="X-Superbot-Signature"),
) -> JSONResponse:
    """Receive a Superbot message delivery.

    Returns:
        200 {success, data} when the delivery was accepted (processed, skipped
        or debounced) or processed with an error reported in data.
        400 if the body is not valid JSON or misses sender_phone/session_id.
        401 if the signature check fails (production only).
        500 on unexpected errors.
    """
    correlation_id = get_correlation_id()

    body_bytes = await request.body()
    try:
        payload: Any = json.loads(body_bytes or b"null")
    except ValueError:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return _error(400, "Invalid JSON body")

    service = get_pipeline().ingestion
    try:
        result = await run_in_threadpool(service.process, payload, body_bytes, x_superbot_signature)
    except InvalidSignatureError as e:
        logger.warning(
            "superbot signature verification failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id, error=str(e))},
        )
        return _error(401, "Invalid signature")
    except InvalidPayloadError as e:
        logger.warning(
            "invalid superbot payload",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id, error=str(e))},
        )
        return _error(400, f"Invalid payload: {e}")
    except Exception:
        logger.exception(
            "superbot webhook failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return _error(500, "Internal error")

    return JSONResponse(status_code=200, content={"success": True, "data": result.to_dict()})


@router.get("/status")
def superbot_webhook_status(user: CurrentUser = CurrentUserDep) -> dict:
    """Pipeline configuration and queue depth."""
    return {"success": True, "data": get_pipeline().ingestion.stats()}


@router.post("/test")
def superbot_webhook_test(
    body: SimulateRequest | None = None,
    user: CurrentUser = CurrentUserDep,
) -> JSONResponse:
    """Run a simulated incoming message (non-production only).

    Uses a default quote-request text and test phone when omitted.
    """
    pipeline = get_pipeline()
    if pipeline.settings.is_production:
        return _error(403, "Test endpoint disabled in production")

    body = body or SimulateRequest()
    try:
        result = pipeline.ingestion.simulate(body.message or DEFAULT_TEST_MESSAGE, body.phone)
    except InvalidPayloadError as e:
        return _error(400, f"Invalid payload: {e}")

    logger.info(
        "simulated webhook message processed",
        extra={"extra_fields": safe_log_context(user_id=user.id, accepted=result.accepted)},
    )
    return JSONResponse(status_code=200, content={"success": True, "data": result.to_dict()})
