"""Worker routes for scheduled pipeline maintenance.

Called by a scheduler with X-Internal-Task-Secret:
- /tasks/webhooks/process-queue: drain messages deferred by the debounce gate
- /tasks/notifications/cleanup: delete old durable notifications
"""

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from leadwire.api.task_auth import verify_task_auth
from leadwire.observability.logging import get_logger
from leadwire.observability.redaction import safe_log_context
from leadwire.services.wiring import get_pipeline

router = APIRouter(prefix="/tasks", tags=["tasks"])

logger = get_logger(__name__)


def _unauthorized() -> JSONResponse:
    return JSONResponse(status_code=401, content={"success": False, "error": "unauthorized"})


@router.post("/webhooks/process-queue")
def process_queue(request: Request) -> JSONResponse:
    """Drain the deferred webhook queue."""
    if not verify_task_auth(request):
        return _unauthorized()

    summary = get_pipeline().ingestion.process_queue()
    return JSONResponse(status_code=200, content={"success": True, "data": summary})


@router.post("/notifications/cleanup")
def cleanup_notifications(request: Request, days: int = Query(30, ge=1)) -> JSONResponse:
    """Delete durable notifications older than `days`."""
    if not verify_task_auth(request):
        return _unauthorized()

    deleted = get_pipeline().notifications.cleanup(days)
    logger.info(
        "notification cleanup task finished",
        extra={"extra_fields": safe_log_context(deleted=deleted)},
    )
    return JSONResponse(status_code=200, content={"success": True, "data": {"deleted": deleted}})
