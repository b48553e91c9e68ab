"""Health and metrics endpoints."""

from fastapi import APIRouter

from screenops.utils.tasks import detached_task_count

router = APIRouter()


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/metrics")
async def metrics():
    """Basic metrics endpoint for observability."""
    return {"service": "screenops", "version": "0.1.0", "detached_crm_syncs": detached_task_count()}
