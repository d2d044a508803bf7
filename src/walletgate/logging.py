"""structlog configuration.

Every module logs through ``structlog.get_logger()``; this module only
decides how those events are rendered. The request id bound by
RequestIdMiddleware arrives through the contextvars processor.
"""

import logging
import sys
from typing import Any

import structlog

# Values under these keys are masked before rendering
_SENSITIVE_KEYS = frozenset({
    "password",
    "new_password",
    "current_password",
    "secret",
    "jwt_secret",
    "token",
    "access_token",
    "refresh_token",
    "signature",
    "authorization",
})


def redact_sensitive(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Mask credentials that slipped into a log call."""
    for key in list(event_dict):
        if key.lower() in _SENSITIVE_KEYS and isinstance(event_dict[key], str):
            event_dict[key] = "***"
    return event_dict


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Install structlog processors for the whole process."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
