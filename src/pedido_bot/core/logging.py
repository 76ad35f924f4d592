"""Logging JSON con structlog; cada evento lleva el trace_id del request en curso."""
from __future__ import annotations
import sys
from contextvars import ContextVar
from uuid import uuid4
import structlog

trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="-")
_configured = False


def set_trace_id(value: str | None = None) -> str:
    """Fija el trace_id del contexto actual (uno nuevo si no viene) y lo devuelve."""
    tid = value or uuid4().hex
    trace_id_ctx.set(tid)
    return tid


def _add_trace_id(_, __, event: dict) -> dict:
    event["trace_id"] = trace_id_ctx.get()
    return event


def _configure() -> None:
    global _configured
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            _add_trace_id,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(20),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
    )
    _configured = True


def get_logger() -> structlog.stdlib.BoundLogger:
    if not _configured:
        _configure()
    return structlog.get_logger()
