"""
Structured JSON logging for the asset kernel.

Every record under the ``asset_kernel`` logger tree is rendered as one JSON
line: a fixed envelope (ts, level, logger, message), the request-scoped
fields bound through ``LogContext``, any ``extra=`` fields, and for
exceptions the type, message, kernel error code and the error's public
attributes.

Orchestrators bind ``correlation_id``, ``actor_id``, ``operation`` and
``order_id`` for the duration of a call; the lifecycle service binds
``asset_id`` instead of ``order_id``.
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
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Mapping
from uuid import UUID

_LOGGER_PREFIX = "asset_kernel"

# ---------------------------------------------------------------------------
# Request-scoped context
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("correlation_id", "actor_id", "operation", "order_id", "asset_id")

_context: ContextVar[Mapping[str, str]] = ContextVar("asset_kernel_log_context", default={})


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    The bound fields live in one immutable mapping per context, so a worker
    thread starts with an empty context and ``bind`` restores the exact
    previous mapping on exit.
    """

    FIELDS = _CONTEXT_FIELDS

    @staticmethod
    def _merged(fields: Mapping[str, str | None]) -> dict[str, str]:
        unknown = set(fields) - set(_CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        return merged

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set context fields for the rest of the current context.  None is ignored."""
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Bind fields for the duration of a ``with`` block."""
        token = _context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON rendering
# ---------------------------------------------------------------------------

_RESERVED_RECORD_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(str(v) for v in value)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _RESERVED_RECORD_KEYS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json_value)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
            # Kernel errors keep their context as public attributes.
            for name, value in vars(exc).items():
                if not name.startswith("_") and name != "code":
                    fields[f"exc_{name}"] = value
        return fields


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the asset_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``asset_kernel`` logger.

    Only the first call has an effect; later calls (the engine and config
    bridges call this too) leave the existing setup alone.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

        kernel_logger = logging.getLogger(_LOGGER_PREFIX)
        kernel_logger.setLevel(level.upper() if isinstance(level, str) else level)
        kernel_logger.propagate = False

        target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        kernel_logger.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and the configured flag. For tests."""
    global _configured
    with _lock:
        _configured = False
        kernel_logger = logging.getLogger(_LOGGER_PREFIX)
        for h in list(kernel_logger.handlers):
            kernel_logger.removeHandler(h)
        kernel_logger.setLevel(logging.WARNING)
