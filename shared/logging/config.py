from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

_REQUEST_CONTEXT_KEYS = ("correlation_id", "user_id", "project_id")


def configure_logging(service_name: str, log_level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure structlog for structured JSON output.

    Must be called once at service startup before any logging occurs.
    Binds service_name to all subsequent log entries via contextvars.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    stream = stream or sys.stdout

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.ExceptionRenderer(),
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
    )

    structlog.contextvars.bind_contextvars(service=service_name)


def bind_request_context(
    correlation_id: str,
    user_id: str | None = None,
    project_id: str | None = None,
) -> None:
    """Bind per-request context variables to structlog context."""
    structlog.contextvars.bind_contextvars(
        correlation_id=correlation_id,
        user_id=user_id,
        project_id=project_id,
    )


def clear_request_context() -> None:
    """Clear per-request context variables after request completes."""
    structlog.contextvars.unbind_contextvars(*_REQUEST_CONTEXT_KEYS)
