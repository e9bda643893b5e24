"""
Logging configuration for LeaveFlow backend
"""
import logging
import sys
from leaveflow.core.config import settings

# LOG_EVENT rule actions write here so rule output can be routed apart from app logs
AUTOMATION_EVENTS_LOGGER = "leaveflow.automation.events"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def setup_logging() -> None:
    """
    Configure root logging from settings.LOG_LEVEL (stdout handler).
    Rule events always log at INFO or above, whatever LOG_LEVEL says.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
    logging.getLogger(AUTOMATION_EVENTS_LOGGER).setLevel(min(log_level, logging.INFO))

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, env=%s, automation_enabled=%s",
        settings.LOG_LEVEL, settings.APP_ENV, settings.AUTOMATION_ENABLED,
    )
