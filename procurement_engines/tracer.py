"""
Invocation tracing for the pure engines.

``@traced_engine`` logs one ``PROCUREMENT_ENGINE_TRACE`` debug record per
call: which engine and version ran, a fingerprint of the inputs that decide
the answer, how long it took, and the outcome. The outcome is the result
itself when it is an enum, the result's ``status`` when it has one (match
verdicts), or the error code when the engine refused the input. Two traces
with the same fingerprint and version must show the same outcome.
"""

from __future__ import annotations

import functools
import hashlib
import json
import time
from collections.abc import Callable, Mapping
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any

from procurement_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

TRACE_MESSAGE = "PROCUREMENT_ENGINE_TRACE"


def _plain(value: Any) -> Any:
    """Reduce engine inputs to JSON with deterministic key order."""
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, str)):
        return value
    # Decimal("1.50") and Decimal("1.5") fingerprint differently on purpose
    return str(value)


def compute_input_fingerprint(fields: tuple[str, ...], kwargs: dict[str, Any]) -> str:
    """First 16 hex chars of SHA-256 over the named keyword inputs."""
    picked = {name: _plain(kwargs.get(name)) for name in fields}
    blob = json.dumps(picked, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()[:16]


def _outcome_of(result: Any) -> str | None:
    status = result if isinstance(result, Enum) else getattr(result, "status", None)
    if isinstance(status, Enum):
        return status.value
    return status if isinstance(status, str) else None


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Emit a trace record around every call of the decorated engine."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            trace: dict[str, Any] = {
                "trace_type": TRACE_MESSAGE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "function": func.__qualname__,
                "input_fingerprint": (
                    compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""
                ),
            }
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                trace["outcome"] = "error"
                trace["error_code"] = getattr(exc, "code", type(exc).__name__)
                raise
            else:
                trace["outcome"] = _outcome_of(result)
                return result
            finally:
                trace["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
                _logger.debug(TRACE_MESSAGE, extra=trace)

        return wrapper

    return decorator
