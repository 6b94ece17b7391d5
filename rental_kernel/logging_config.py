"""
Structured JSON logging for the rental lifecycle core.

Every logger lives under the ``rental_kernel`` namespace and writes one JSON
object per line.  Request- and job-scoped fields (who is acting, on which
lease, inside which scheduled job) ride along in ``LogContext`` so call
sites only pass the event name and the event's own data::

    logger.info("payment_recorded", extra={"payment_id": str(pid), "status": status})

Event names are snake_case.  ``extra`` keys must not collide with the
attributes of ``logging.LogRecord`` (``created``, ``name``, ``module``...).
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
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

_NAMESPACE = "rental_kernel"

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("rental_log_context", default=_EMPTY)


class LogContext:
    """
    Request/job scoped fields merged into every record.

    Backed by one ``ContextVar`` holding an immutable mapping, so threads
    (the scheduler) and asyncio tasks (the API) each see their own view.
    Unknown field names are ignored rather than raising.
    """

    FIELDS: tuple[str, ...] = ("correlation_id", "actor_id", "lease_id", "job_name")

    @classmethod
    def _merged(cls, fields: Mapping[str, Any]) -> Mapping[str, str]:
        current = dict(_context.get())
        for name, value in fields.items():
            if name in cls.FIELDS and value is not None:
                current[name] = str(value)
        return MappingProxyType(current)

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Add or replace fields; ``None`` values leave a field untouched."""
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set(_EMPTY)

    @classmethod
    def bind(cls, **fields: Any) -> "_BoundContext":
        """Scope fields to a ``with`` block; the previous view is restored on exit."""
        return _BoundContext(cls._merged(fields))


class _BoundContext:
    def __init__(self, view: Mapping[str, str]):
        self._view = view
        self._token = None

    def __enter__(self) -> type[LogContext]:
        self._token = _context.set(self._view)
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        _context.reset(self._token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else on a record came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    return repr(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # RentalKernelError subclasses keep their ids/amounts as attributes.
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, message, context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """``get_logger("batch.scheduler")`` -> ``rental_kernel.batch.scheduler``."""
    return logging.getLogger(f"{_NAMESPACE}.{name}")


_setup_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``rental_kernel`` logger.

    Only the first call has an effect until ``reset_logging()``; the API
    factory, the scheduler entry point and tests may all call it.
    """
    global _installed_handler
    with _setup_lock:
        if _installed_handler is not None:
            return
        _installed_handler = handler or logging.StreamHandler(stream or sys.stderr)
        _installed_handler.setFormatter(StructuredFormatter())

        namespace_logger = logging.getLogger(_NAMESPACE)
        namespace_logger.setLevel(level.upper() if isinstance(level, str) else level)
        namespace_logger.propagate = False
        namespace_logger.addHandler(_installed_handler)


def reset_logging() -> None:
    """Detach the installed handler. Tests only."""
    global _installed_handler
    with _setup_lock:
        namespace_logger = logging.getLogger(_NAMESPACE)
        namespace_logger.handlers.clear()
        namespace_logger.setLevel(logging.WARNING)
        namespace_logger.propagate = True
        _installed_handler = None
