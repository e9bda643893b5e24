"""
Central error handling for LeaveFlow backend
"""
import logging
import traceback
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

logger = logging.getLogger(__name__)


class AutomationError(Exception):
    """Base class for automation engine failures"""


class ActionExecutionError(AutomationError):
    """A single rule action failed. Carries the action type and the underlying cause."""

    def __init__(self, action_type: str, message: str, cause: Optional[BaseException] = None):
        self.action_type = action_type
        self.cause = cause
        super().__init__(message)


class UnknownActionTypeError(ActionExecutionError):
    """Rule references an action type the executor does not know"""

    def __init__(self, action_type: str):
        super().__init__(action_type, f"Unknown action type: {action_type}")


class AutomationExecutionError(AutomationError):
    """Rules could not be fetched or the engine could not run at all"""

    def __init__(self, message: str = "Failed to execute automation rules"):
        super().__init__(message)


def _error_body(request: Request, status_code: int, message, **extra) -> dict:
    body = {
        "success": False,
        "status_code": status_code,
        "message": message,
        "path": str(request.url.path),
    }
    body.update(extra)
    return body


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException with consistent JSON response format

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        JSONResponse with error details
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from leaveflow.core.config import settings

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(request, 422, "Validation error: Invalid request data"),
        )

    # Sanitize for JSON: e.g. ctx.error ValueError -> str
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(request, 422, "Validation failed", errors=errors),
    )


async def automation_exception_handler(request: Request, exc: AutomationExecutionError) -> JSONResponse:
    """Engine-level failure (rule store unreachable). Cause is logged, not returned."""
    logger.error("Automation failure on %s: %s", request.url.path, exc, exc_info=exc.__cause__ or exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, 500, str(exc)),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    from leaveflow.core.config import settings

    logger.error("Unhandled exception: %s", exc, exc_info=True)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(request, 500, "Internal server error"),
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request,
            500,
            str(exc),
            traceback=traceback.format_exc() if settings.APP_ENV == "local" else None,
        ),
    )
