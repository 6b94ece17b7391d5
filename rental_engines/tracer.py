"""
rental_engines.tracer -- RENTAL_ENGINE_TRACE records for pure calculators.

Responsibility:
    ``@traced_engine`` marks a calculator (penalty engine, payment state
    machine) so every call leaves one structured log line naming the engine,
    its version, how long it took and a fingerprint of the inputs that
    decide its answer.  Two calls with the same fingerprint and version must
    return the same result, which is what makes a disputed penalty quote
    reproducible.

Architecture position:
    Engines.  Imports only the kernel logger; the wrapped function stays
    free of I/O.

Invariants enforced:
    - The fingerprint depends only on the values of ``fingerprint_fields``:
      mapping order, set order and positional-vs-keyword call style do not
      change it.  It is the first 16 hex chars of a SHA-256.
    - Arguments are read, never modified.

Failure modes:
    - Exceptions raised by the engine propagate unchanged and no trace is
      written for that call.
    - A fingerprint field that was not passed contributes "null".

Usage:
    @traced_engine("termination_policy", "1.0",
                   fingerprint_fields=("requested_end_date", "monthly_rent"))
    def calculate(policy, lease, requested_end_date, monthly_rent, now):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from rental_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return _canonicalize(value.value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _canonicalize(dataclasses.asdict(value))
    if isinstance(value, Mapping):
        body = ",".join(
            f"{key}:{_canonicalize(value[key])}" for key in sorted(value, key=str)
        )
        return "{" + body + "}"
    if isinstance(value, (set, frozenset)):
        return "[" + ",".join(sorted(_canonicalize(v) for v in value)) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """SHA-256 prefix over ``name=value`` pairs in ``fingerprint_fields`` order."""
    canonical = "|".join(
        f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                bound.apply_defaults()
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

            logger.info(
                "RENTAL_ENGINE_TRACE",
                extra={
                    "trace_type": "RENTAL_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": elapsed_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
