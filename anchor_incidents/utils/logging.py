"""
structlog setup for the incident service.

Log lines are rendered as JSON and carry the correlation id of the HTTP
request being served, when there is one.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any, Optional

import structlog
from structlog.types import EventDict

from anchor_incidents.config.app_config import get_app_config

# Set per request by the correlation-id middleware
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Bind a correlation id to the current context, generating one if empty."""
    correlation_id = correlation_id or uuid.uuid4().hex
    correlation_id_var.set(correlation_id)
    return correlation_id


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    correlation_id = correlation_id_var.get()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def configure_logging() -> None:
    """Route structlog through stdlib logging at the configured LOG_LEVEL."""
    level = get_app_config()["log_level"].upper()
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            add_correlation_id,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_incident_event(logger: structlog.stdlib.BoundLogger, event: str, incident_id: str, **fields: Any) -> None:
    """Log a lifecycle event keyed by the incident's storage id."""
    logger.info(event, incident_id=str(incident_id), **fields)


configure_logging()
