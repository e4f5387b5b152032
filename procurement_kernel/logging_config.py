"""
Structured JSON logging for the procurement engine.

Every record under the ``procurement`` logger becomes one JSON line. Fields
bound in :class:`LogContext` (who is acting, on which document) are merged
into each line, so a requisition's approval trail can be filtered out of a
mixed log by ``document_id`` alone.
"""

__all__ = [
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
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

_ROOT = "procurement"

_EMPTY: Mapping[str, str] = MappingProxyType({})

_fields: ContextVar[Mapping[str, str]] = ContextVar("procurement_log_fields", default=_EMPTY)


class LogContext:
    """Request-scoped log fields, safe across threads and asyncio tasks."""

    FIELDS = (
        "correlation_id",
        "actor_id",
        "actor_role",
        "document_type",
        "document_id",
    )

    @staticmethod
    def _merged(values: Mapping[str, Any]) -> Mapping[str, str]:
        current = dict(_fields.get())
        for name, value in values.items():
            if name in LogContext.FIELDS and value is not None:
                current[name] = str(value.value if isinstance(value, Enum) else value)
        return MappingProxyType(current)

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        actor_id: str | None = None,
        actor_role: str | None = None,
        document_type: str | None = None,
        document_id: str | None = None,
    ) -> None:
        """Overwrite the given fields for the rest of the current context."""
        _fields.set(cls._merged({
            "correlation_id": correlation_id,
            "actor_id": actor_id,
            "actor_role": actor_role,
            "document_type": document_type,
            "document_id": document_id,
        }))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_fields.get())

    @classmethod
    def clear(cls) -> None:
        _fields.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **values: Any) -> Iterator[type["LogContext"]]:
        """Scope fields to a ``with`` block. Unknown names are dropped."""
        token = _fields.set(cls._merged(values))
        try:
            yield cls
        finally:
            _fields.reset(token)

    @classmethod
    def for_document(cls, document_type: str, document_id: Any, actor: Any = None):
        """Bind the document being worked on, plus the acting user if given."""
        values: dict[str, Any] = {"document_type": document_type, "document_id": document_id}
        if actor is not None:
            values["actor_id"] = actor.user_id
            values["actor_role"] = actor.role
        return cls.bind(**values)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    # UUID, Decimal, date and anything else an extra may carry
    return str(value)


_RESERVED: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    out: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        out["exc_code"] = code
    # ProcurementError subclasses keep their context as plain attributes
    out.update(
        (f"exc_{name}", value)
        for name, value in vars(exc).items()
        if not name.startswith("_") and name not in ("args", "code")
    )
    return out


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, context, extras, then error detail."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_fields.get(),
        }
        for name, value in vars(record).items():
            if name not in _RESERVED:
                line.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            line.update(_exception_fields(record.exc_info[1]))
            line["traceback"] = self.formatException(record.exc_info)

        return json.dumps(line, default=_plain)


def get_logger(name: str) -> logging.Logger:
    """Return ``procurement.<name>``."""
    return logging.getLogger(f"{_ROOT}.{name}")


_state_lock = threading.Lock()
_installed = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the procurement root. Later calls are no-ops."""
    global _installed
    with _state_lock:
        if _installed:
            return
        _installed = True

    if handler is None:
        handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.addHandler(handler)
    root.propagate = False


def reset_logging() -> None:
    """Undo :func:`configure_logging`. Used by the test suite."""
    global _installed
    with _state_lock:
        _installed = False
    root = logging.getLogger(_ROOT)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
