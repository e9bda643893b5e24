"""
Health check endpoint
"""
from fastapi import APIRouter

router = APIRouter()

SERVICE_NAME = "leaveflow-backend"


@router.get("/health")
async def health_check():
    """
    Health check endpoint

    Returns service status.
    """
    return {
        "status": "ok",
        "service": SERVICE_NAME,
    }
