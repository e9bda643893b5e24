"""
Version and metadata endpoint
"""
from fastapi import APIRouter
from leaveflow.api.v1.health import SERVICE_NAME
from leaveflow.core.config import settings

router = APIRouter()


@router.get("/version")
async def get_version():
    """
    Get application version and metadata

    Returns:
        Service name, version, environment and whether automation triggers fire
    """
    return {
        "service": SERVICE_NAME,
        "version": settings.VERSION or "1.0.0",
        "env": settings.APP_ENV,
        "automation_enabled": settings.AUTOMATION_ENABLED,
    }
