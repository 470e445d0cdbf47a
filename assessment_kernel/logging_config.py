"""
Structured JSON logging for the assessment kernel.

Every log line is one JSON object.  Fields bound with ``LogContext`` (the
acting assessor, the estimate, ledger or FRC being worked on) are merged
into every record emitted inside the binding, so a single claim can be
followed across the service, aggregate and engine logs.

Usage::

    configure_logging()
    logger = get_logger("services.financials")
    with LogContext.bind(actor_id="assessor-001", estimate_id=estimate.id):
        logger.info("estimate_finalized", extra={"total": estimate.total})
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
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "assessment_kernel"

CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "estimate_id",
    "ledger_id",
    "frc_id",
    "trace_id",
)

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"assessment_log_{name}", default=None) for name in CONTEXT_FIELDS
}


class LogContext:
    """Request-scoped log fields held in context variables (thread- and task-safe)."""

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set the given fields; None values leave the current value alone."""
        for name, value in fields.items():
            if value is not None:
                _var(name).set(str(value))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return {
            name: value
            for name, var in _context_vars.items()
            if (value := var.get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: Any) -> "_Binding":
        """Context manager: set fields on entry, restore the previous values on exit."""
        return _Binding(fields)


def _var(name: str) -> ContextVar[str | None]:
    try:
        return _context_vars[name]
    except KeyError:
        raise ValueError(f"Unknown log context field: {name}") from None


class _Binding:
    def __init__(self, fields: dict[str, Any]):
        self._fields = fields
        self._tokens: list[tuple[ContextVar, Token]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            if value is not None:
                var = _var(name)
                self._tokens.append((var, var.set(str(value))))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


# Attributes every LogRecord carries; anything else came in through extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: base fields, bound context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))

        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        if hasattr(exc, "code"):
            fields["exc_code"] = exc.code
        # kernel errors carry their context as public attributes
        for name, value in vars(exc).items():
            if not name.startswith("_") and name not in ("args", "code"):
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``assessment_kernel`` namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``assessment_kernel`` logger.  Later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
