"""Logging configuration using structlog.

Console output for development, JSON for production. Credential-bearing
fields are redacted before rendering so tokens and API keys never reach logs.
"""

import logging
import sys

import structlog

# Event keys whose values must never be written out
SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "token",
        "token_hash",
        "password",
        "password_hash",
        "api_key",
        "encrypted_key",
        "ciphertext",
    }
)

REDACTED = "[redacted]"


def redact_sensitive(_logger, _method_name: str, event_dict: dict) -> dict:
    """structlog processor replacing sensitive values with a placeholder."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
) -> None:
    """Configure structured logging.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        json_format: If True, output JSON format (for production).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    # uvicorn and apscheduler still log through the standard library
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_format
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ExtraAdder(),
            redact_sensitive,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance, optionally bound to a component name."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger


async def reset_log_context(request, call_next):
    """HTTP middleware starting every request with empty structlog contextvars.

    require_auth binds user_id for the rest of the request; clearing first keeps
    a previous request's identity off this request's log lines.
    """
    structlog.contextvars.clear_contextvars()
    return await call_next(request)
