"""
pipetrak_engines.tracer -- Engine invocation tracer emitting PIPETRAK_ENGINE_TRACE.

Responsibility:
    Wrap report engine entry points so that every run
    (1) executes inside a ``LogContext`` scope naming the engine, project
        and grouping dimension, and
    (2) ends with one PIPETRAK_ENGINE_TRACE record carrying the engine
        name and version, an input fingerprint, the outcome and duration_ms.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits log records only; inputs and outputs pass through untouched.

Invariants enforced:
    - PURITY: the fingerprint is a SHA-256 prefix over canonical JSON of
      the selected keyword inputs (enums by value, dates in ISO form,
      Decimals as strings, dataclasses as field mappings).

Failure modes:
    - A raising engine still emits its trace with ``outcome="error"``;
      the exception propagates unchanged.
    - Fingerprint fields missing from kwargs are recorded as null.

Usage:
    from pipetrak_engines.tracer import traced_engine

    @traced_engine("aggregation", "1.0", fingerprint_fields=("project_id",))
    def component_report(self, *, entities, dimension, project_id, ...):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import json
import time
from collections.abc import Callable, Mapping
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pipetrak_kernel.logging_config import LogContext, get_logger

_logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16

# Keyword inputs copied into the log context while an engine runs.
_SCOPED_KWARGS = ("project_id", "dimension")


def _canonical(value: Any) -> Any:
    """JSON-ready, order-independent form of an engine input."""
    if isinstance(value, Enum):
        return _canonical(value.value)
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _canonical(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(
            (_canonical(v) for v in value),
            key=lambda v: json.dumps(v, sort_keys=True),
        )
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """Deterministic 16-hex-char SHA-256 prefix over the named kwargs."""
    document = {name: _canonical(kwargs.get(name)) for name in fingerprint_fields}
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that scopes logging and emits PIPETRAK_ENGINE_TRACE.

    Args:
        engine_name: Engine identifier (e.g., "aggregation"); bound as the
            ``engine`` log context field.
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Keyword argument names hashed into the
            input fingerprint.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields
                else ""
            )
            scope = {k: kwargs[k] for k in _SCOPED_KWARGS if k in kwargs}

            with LogContext.bind(engine=engine_name, **scope):
                t0 = time.monotonic()
                outcome = "error"
                try:
                    result = func(*args, **kwargs)
                    outcome = "ok"
                    return result
                finally:
                    _logger.info(
                        "PIPETRAK_ENGINE_TRACE",
                        extra={
                            "trace_type": "PIPETRAK_ENGINE_TRACE",
                            "engine_name": engine_name,
                            "engine_version": engine_version,
                            "input_fingerprint": fingerprint,
                            "outcome": outcome,
                            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                            "function": func.__qualname__,
                        },
                    )

        return wrapper

    return decorator
