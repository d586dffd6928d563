"""
Structured JSON logging for the portal kernel.

Every record is one JSON object per line:

    {"ts": "...", "level": "INFO", "logger": "portal_kernel.services.portal",
     "message": "request_submitted", "correlation_id": "...",
     "actor_id": "...", "request_id": "...", ...}

Messages are snake_case event names; details travel in ``extra``.  Call-scoped
fields (who is calling, which request or approval is being worked on) live
in ``LogContext`` and are merged into every record emitted while bound.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "operation_scope",
    "reset_logging",
]

import json
import logging
import threading
import time
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "request_id",
    "approval_id",
    "trace_id",
)

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"portal_log_{name}", default=None) for name in CONTEXT_FIELDS
}


class LogContext:
    """
    ContextVar-backed holder for call-scoped log fields.

    Each thread (and each asyncio task) sees its own values, so concurrent
    portal calls never leak a correlation_id into each other's records.
    Unknown field names are ignored.
    """

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set fields; None values leave the current value untouched."""
        for name, value in fields.items():
            var = _CONTEXT_VARS.get(name)
            if var is not None and value is not None:
                var.set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Non-None context fields, in CONTEXT_FIELDS order."""
        ctx: dict[str, str] = {}
        for name, var in _CONTEXT_VARS.items():
            value = var.get()
            if value is not None:
                ctx[name] = value
        return ctx

    @classmethod
    def clear(cls) -> None:
        for var in _CONTEXT_VARS.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: Any) -> "_BoundContext":
        """Context manager: set ``fields`` on entry, restore prior values on exit."""
        return _BoundContext(fields)


class _BoundContext:

    def __init__(self, fields: dict[str, Any]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar[str | None], Token]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            var = _CONTEXT_VARS.get(name)
            if var is not None and value is not None:
                self._tokens.append((var, var.set(str(value))))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    """UUIDs, timestamps, money amounts and status enums in log payloads."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON line per record: envelope, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload = self._envelope(record)
        payload.update(LogContext.get_all())
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in payload:
                payload[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _envelope(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # PortalKernelError subclasses keep their identifiers as attributes.
        for name, value in vars(exc).items():
            if not name.startswith("_") and name not in ("args", "code"):
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "portal_kernel"


def get_logger(name: str) -> logging.Logger:
    """Logger under the portal_kernel namespace (``portal_kernel.<name>``)."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


@contextmanager
def operation_scope(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> Iterator[None]:
    """
    Bind ``context`` for the duration of one operation and log its outcome.

    Errors carrying a ``code`` attribute are logged as
    ``portal_operation_failed`` at INFO and re-raised; anything else
    propagates without a log line here.  Success is logged at DEBUG.
    """
    start = time.monotonic()

    def elapsed_ms() -> float:
        return round((time.monotonic() - start) * 1000, 3)

    with LogContext.bind(**context):
        try:
            yield
        except Exception as exc:
            code = getattr(exc, "code", None)
            if code is not None:
                logger.info(
                    "portal_operation_failed",
                    extra={"operation": operation, "error_code": code, "duration_ms": elapsed_ms()},
                )
            raise
        logger.debug(
            "portal_operation_completed",
            extra={"operation": operation, "duration_ms": elapsed_ms()},
        )


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``portal_kernel`` logger.

    Idempotent: only the first call takes effect until reset_logging().
    ``level`` may be a number or a level name such as "DEBUG".  Records do
    not propagate to the root logger.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        import sys

        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    portal_logger = logging.getLogger(_LOGGER_PREFIX)
    portal_logger.setLevel(level.upper() if isinstance(level, str) else level)
    portal_logger.propagate = False
    portal_logger.addHandler(handler)


def reset_logging() -> None:
    """Undo configure_logging(). FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    portal_logger = logging.getLogger(_LOGGER_PREFIX)
    portal_logger.handlers.clear()
    portal_logger.setLevel(logging.WARNING)
