"""
assessment_engines.tracer -- ``@traced_engine`` and ASSESSMENT_ENGINE_TRACE.

Responsibility:
    Every costing, actual-derivation and threshold call logs one
    ASSESSMENT_ENGINE_TRACE record: engine name and version, a fingerprint
    of the inputs that decide the result, and the call duration.  Two
    estimates priced from the same quantities and rate set carry the same
    fingerprint, so a disputed total can be matched to the trace that
    produced it.

Architecture position:
    Engines -- support code for the pure calculators.  Reads arguments and
    writes a log record; never changes inputs or results.

Invariants enforced:
    - The fingerprint is the first 16 hex characters of SHA-256 over the
      canonical JSON of the selected arguments (``utils.hashing``), so
      dict ordering and Decimal trailing zeros do not change it.
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable
from dataclasses import asdict, is_dataclass
from typing import Any

from assessment_kernel.logging_config import get_logger
from assessment_kernel.utils.hashing import canonical_json

logger = get_logger("engines.tracer")

FINGERPRINT_LENGTH = 16


def _plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return value


def compute_input_fingerprint(fingerprint_fields: tuple[str, ...], arguments: dict[str, Any]) -> str:
    """Fingerprint of the named arguments; absent names count as null."""
    selected = {name: _plain(arguments.get(name)) for name in fingerprint_fields}
    return hashlib.sha256(canonical_json(selected).encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Wrap a pure engine function so each call emits ASSESSMENT_ENGINE_TRACE.

    ``fingerprint_fields`` names the parameters (positional or keyword)
    that go into the input fingerprint.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fingerprint = compute_input_fingerprint(fingerprint_fields, dict(bound.arguments))

            started = time.monotonic()
            result = func(*args, **kwargs)

            logger.info(
                "ASSESSMENT_ENGINE_TRACE",
                extra={
                    "trace_type": "ASSESSMENT_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
