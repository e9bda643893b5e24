"""
LeaveFlow Backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

from leaveflow.api.router import api_router
from leaveflow.core.config import settings
from leaveflow.core.errors import (
    AutomationExecutionError,
    automation_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler,
)
from leaveflow.core.logging import setup_logging
from leaveflow.db.session import init_models

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return url
    if parsed.password:
        netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))
    return url


# Create FastAPI app
app = FastAPI(
    title="LeaveFlow Backend",
    description="Leave request lifecycle and rule-based leave automation",
    version=settings.VERSION or "1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=settings.ALLOWED_ORIGINS != "*",
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(AutomationExecutionError, automation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))
    logger.info("Automation triggers %s", "enabled" if settings.AUTOMATION_ENABLED else "disabled")


@app.on_event("startup")
def create_sqlite_tables() -> None:
    """SQLite databases get their tables created on startup; others run `alembic upgrade head`."""
    init_models()
