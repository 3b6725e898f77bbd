"""
routing_engines.tracer -- ROUTING_ENGINE_TRACE records for pure engines.

Responsibility:
    ``@traced_engine`` wraps an engine function and, after each call,
    emits one DEBUG record naming the engine, its version, a fingerprint
    of the selected keyword inputs, the duration and the outcome.  Two
    decisions with equal fingerprints saw equal inputs, which is how a
    surprising routing outcome is replayed.

Architecture position:
    Engines -- support code for the pure calculation layer.  Emits a log
    record only; never mutates or stores inputs.

Fingerprint:
    Inputs are reduced to JSON-compatible values (enums by value,
    dataclasses by field, sets sorted, mapping keys stringified), dumped
    with sorted keys and hashed with SHA-256.  The first 16 hex characters
    are kept.  Missing keyword arguments count as None.  Nothing is
    hashed unless DEBUG is enabled for the tracer logger.
"""

from __future__ import annotations

import dataclasses
import enum
import functools
import hashlib
import json
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from routing_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            "__type__": type(value).__name__,
            **{f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)},
        }
    if isinstance(value, Mapping):
        return {str(_plain(k)): _plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((_plain(v) for v in value), key=repr)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """16-hex-char SHA-256 fingerprint of ``kwargs`` restricted to ``fingerprint_fields``."""
    selected = {name: _plain(kwargs.get(name)) for name in fingerprint_fields}
    canonical = json.dumps(selected, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorate a keyword-only engine function with trace logging.

    Args:
        engine_name: Engine identifier, e.g. "scoring".
        engine_version: Bumped whenever the engine's rules change.
        fingerprint_fields: Keyword argument names hashed into
            ``input_fingerprint``; empty means no fingerprint.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not _logger.isEnabledFor(logging.DEBUG):
                return func(*args, **kwargs)

            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields
                else ""
            )
            outcome = "error"
            t0 = time.monotonic()
            try:
                result = func(*args, **kwargs)
                outcome = "ok"
                return result
            finally:
                _logger.debug(
                    "ROUTING_ENGINE_TRACE",
                    extra={
                        "trace_type": "ROUTING_ENGINE_TRACE",
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
