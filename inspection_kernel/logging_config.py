"""
Structured logging for the inspection workflow.

Every record under the ``inspection_kernel`` logger namespace is rendered as
one JSON object per line.  Request-scoped identifiers (which inspection,
which shop, which actor) live in ``LogContext`` and are stamped onto every
record emitted while they are bound, so a transition's validation, write
and commit lines can be joined without passing ids through every call.

Usage::

    from inspection_kernel.logging_config import LogContext, get_logger

    logger = get_logger("services.workflow_executor")

    with LogContext.bind(inspection_id=inspection_id, shop_id=shop_id):
        logger.info("transition_committed", extra={"new_version": 3})
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping
from uuid import UUID

LOGGER_NAMESPACE = "inspection_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "inspection_id",
    "shop_id",
    "actor_id",
    "trace_id",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("inspection_log_context", default=_EMPTY)


def _merged(current: Mapping[str, str], fields: Mapping[str, Any]) -> Mapping[str, str]:
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
    merged = dict(current)
    merged.update({k: str(v) for k, v in fields.items() if v is not None})
    return MappingProxyType(merged)


class LogContext:
    """
    Request-scoped fields added to every log record.

    Backed by a single ContextVar holding an immutable mapping, so values
    never leak between threads or asyncio tasks.  ``None`` values are
    ignored rather than clearing a field.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        _context.set(_merged(_context.get(), fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Add ``fields`` for the duration of the block, then restore."""
        token = _context.set(_merged(_context.get(), fields))
        try:
            yield
        finally:
            _context.reset(token)


# Attributes every LogRecord carries; anything else came from ``extra``.
_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, Mapping):
        return dict(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Workflow exceptions keep their context as public attributes.
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, message, context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger ``inspection_kernel.<name>``; all engine packages log through it."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the namespace logger.

    Only the first call has an effect until ``reset_logging()``; later calls
    (from engine init, bootstrap, tests) are no-ops.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    namespace_logger.setLevel(level)
    namespace_logger.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    namespace_logger.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` to run again.  Tests only."""
    global _configured
    with _configure_lock:
        _configured = False
    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
    namespace_logger.handlers.clear()
    namespace_logger.setLevel(logging.WARNING)
