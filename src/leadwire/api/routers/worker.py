"""Worker/internal routes (APP_ROLE=worker)."""

from fastapi import APIRouter

from leadwire.services.wiring import get_pipeline

router = APIRouter()


@router.get("/tasks/health")
def tasks_health() -> dict:
    """Tasks subsystem health check, with deferred queue depth."""
    return {
        "status": "ok",
        "subsystem": "tasks",
        "queue_size": get_pipeline().ingestion.queue_size(),
    }


@router.get("/internal/health")
def internal_health() -> dict:
    return {"status": "ok", "subsystem": "internal"}
