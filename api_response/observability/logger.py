"""Structured logging built on structlog, with loguru as the output sink."""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from types import FrameType
from typing import Any, Iterator, Mapping

import structlog
from loguru import logger as loguru_logger

__all__ = [
    "configure_logging",
    "generate_request_id",
    "get_logger",
    "get_request_id",
    "request_context",
]

_REQUEST_ID: ContextVar[str | None] = ContextVar("request_id", default=None)
_CONFIGURED: bool = False


def _format_record(record: Mapping[str, Any]) -> str:
    timestamp = record["time"].isoformat()
    level = record["level"].name
    extra = record.get("extra") or {}
    service = extra.get("service", "-")
    request_id = extra.get("request_id") or "-"
    source = extra.get("logger") or record["name"]
    message = str(record.get("message", ""))
    # The returned string is itself treated as a format template by loguru;
    # JSON payloads need their braces escaped.
    message = message.replace("{", "{{").replace("}", "}}")
    return (
        f"{timestamp} | {level:<8} | {service} | {request_id} | {source} | {message}\n"
    )


def _coerce_level(level: str | int) -> tuple[int, str]:
    """Normalize ``level`` to logging and loguru compatible representations."""

    if isinstance(level, int):
        numeric = level
    else:
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level}")
    name = logging.getLevelName(numeric)
    if not isinstance(name, str):  # pragma: no cover - custom numeric levels
        name = "INFO"
    return numeric, name


def get_request_id() -> str | None:
    """Return the request identifier bound to the current context, if any."""

    return _REQUEST_ID.get()


def generate_request_id() -> str:
    return uuid.uuid4().hex


class LoguruInterceptHandler(logging.Handler):
    """Forward standard logging records (and structlog output) to loguru.

    The request id reaches the sink through ``loguru_logger.contextualize``.
    """

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - thin wrapper
        level: str | int
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame: FrameType | None = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.bind(logger=record.name).opt(
            depth=depth, exception=record.exc_info
        ).log(level, record.getMessage())


def configure_logging(
    *, service_name: str | None = None, level: str | int = "INFO"
) -> None:
    """Route structlog and stdlib logging through loguru.

    Safe to call more than once: only the first call installs the sink and
    handlers, later calls adjust the root level.
    ``service_name`` is bound to every subsequent structured entry.
    """

    global _CONFIGURED

    numeric_level, level_name = _coerce_level(level)

    if not _CONFIGURED:
        loguru_logger.remove()
        loguru_logger.add(
            sys.stdout,
            level=level_name,
            backtrace=False,
            diagnose=False,
            format=_format_record,
        )
        logging.basicConfig(
            handlers=[LoguruInterceptHandler()],
            level=numeric_level,
            force=True,
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _CONFIGURED = True
    else:
        logging.getLogger().setLevel(numeric_level)

    if service_name:
        loguru_logger.configure(extra={"service": service_name})
        structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger bound to ``name``."""

    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name)


@contextmanager
def request_context(request_id: str | None = None) -> Iterator[str]:
    """Bind ``request_id`` (generated when omitted) for the lifetime of the block."""

    rid = request_id or generate_request_id()
    token = _REQUEST_ID.set(rid)
    with structlog.contextvars.bound_contextvars(request_id=rid):
        with loguru_logger.contextualize(request_id=rid):
            try:
                yield rid
            finally:
                _REQUEST_ID.reset(token)
