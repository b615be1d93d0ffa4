from fastapi import APIRouter

from apps.api.config import settings
from apps.api.services.generation_service import generation_runner
from apps.api.services.streaming_service import streaming_service

router = APIRouter()

@router.get("/health")
async def health_check():
    """Health check endpoint.

    Returns service status, name and version, plus how many SSE connections
    and generation jobs this process is holding.
    """
    return {
        "status": "ok",
        "name": settings.app_name,
        "version": settings.app_version,
        "streams": streaming_service.get_total_connections(),
        "running_jobs": generation_runner.running_jobs(),
    }
