"""Structured logging: structlog for domain events, stdlib routed through it."""

from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar
from typing import Any

import structlog

__all__ = [
    "bind_checkin_context",
    "configure_logging",
    "correlation_id_var",
    "get_logger",
    "new_correlation_id",
    "start_request_context",
]

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def new_correlation_id() -> str:
    """Return a fresh id and make it the current one."""
    cid = uuid.uuid4().hex
    correlation_id_var.set(cid)
    return cid


def start_request_context(cid: str | None) -> str:
    """Drop context left by a previous request and adopt ``cid`` (or a new id)."""
    structlog.contextvars.clear_contextvars()
    if cid:
        correlation_id_var.set(cid)
        return cid
    return new_correlation_id()


def bind_checkin_context(**ids: int | str | None) -> None:
    """Attach check-in identifiers to every log line of the current request."""
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in ids.items() if value is not None}
    )


def _stamp_correlation_id(_: Any, __: str, event: dict[str, Any]) -> dict[str, Any]:
    cid = correlation_id_var.get()
    if cid:
        event.setdefault("correlation_id", cid)
    return event


def configure_logging(*, json_output: bool = True, level: str = "INFO") -> None:
    """Route structlog and stdlib ``logging`` through one renderer.

    Library loggers (uvicorn, psycopg) get the same timestamp, level and
    correlation id as our own events.
    """
    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _stamp_correlation_id,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    renderer: Any = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())


def get_logger(**initial: Any) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(**initial)  # type: ignore[no-any-return]
