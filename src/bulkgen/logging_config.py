"""Structured logging for the API and its background jobs, built on structlog."""

import logging
import sys
from typing import IO

import structlog

SERVICE_NAME = "bulkgen"

# Third-party loggers that are too chatty at INFO.
_LIBRARY_LEVELS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def _add_service(_logger, _method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_logging(
    log_level: str = "info", json_output: bool = False, stream: IO[str] | None = None
) -> None:
    """Route stdlib logging through structlog.

    Module loggers stay plain ``logging.getLogger(__name__)``; job and trace
    ids bound with the helpers below are merged into every record.

    Args:
        log_level: Logging level string (debug/info/warning/error).
        json_output: One JSON object per line when True, colored console otherwise.
        stream: Destination, stdout by default.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    pre_chain = _pre_chain()

    if json_output:
        final = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        final = [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name, library_level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(max(level, library_level))


def bind_request_context(trace_id: str, owner_id: str | None = None) -> None:
    """Bind request-scoped variables to the current async context."""
    ctx = {"trace_id": trace_id}
    if owner_id:
        ctx["owner_id"] = owner_id
    structlog.contextvars.bind_contextvars(**ctx)


def bind_job_context(job_id: str, owner_id: str | None = None) -> None:
    """Tag every log line of the calling task with its job.

    A task copies the context when it is created, so this does not leak into
    the request that spawned the job.
    """
    ctx = {"job_id": job_id}
    if owner_id:
        ctx["owner_id"] = owner_id
    structlog.contextvars.bind_contextvars(**ctx)


def clear_request_context() -> None:
    """Drop everything bound for the current request."""
    structlog.contextvars.clear_contextvars()
