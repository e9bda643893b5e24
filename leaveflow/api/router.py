"""
Main API router
"""
from fastapi import APIRouter

from leaveflow.api.v1 import (
    health,
    version,
    leaves,
    automation_rules,
    notifications,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(leaves.router, prefix="/leaves", tags=["leaves"])
api_router.include_router(automation_rules.router, prefix="/automation-rules", tags=["automation-rules"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
