"""Structural limits applied to `log_work` arguments before persistence.

Checks are pure: they inspect the payload and return a rejection reason (or
`None`), and never touch a sink. Callers run them in this order:

- `validate_request_size` on the raw call arguments (before schema validation)
- `validate_log_record` on the schema-valid `log_record`

Within `validate_log_record` the first failing rule wins, so error messages are
deterministic: serialized size, then total key count, then nesting depth.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .constants import MAX_LOG_RECORD_BYTES, MAX_LOG_RECORD_DEPTH, MAX_LOG_RECORD_KEYS, MAX_REQUEST_BYTES


@dataclass(frozen=True)
class GuardrailLimits:
    """Ceilings enforced by the guardrail checks (overridable per call)."""

    max_request_bytes: int = MAX_REQUEST_BYTES
    max_log_record_bytes: int = MAX_LOG_RECORD_BYTES
    max_log_record_keys: int = MAX_LOG_RECORD_KEYS
    max_log_record_depth: int = MAX_LOG_RECORD_DEPTH


DEFAULT_LIMITS = GuardrailLimits()


def validate_request_size(raw_arguments: Any, limits: GuardrailLimits = DEFAULT_LIMITS) -> str | None:
    """Reject call payloads whose serialized form exceeds the request ceiling."""
    try:
        size = serialized_size_bytes(raw_arguments)
    except (TypeError, ValueError, RecursionError):
        return "Invalid log_work arguments: request payload is not serializable."

    if size > limits.max_request_bytes:
        return f"Request payload exceeds {limits.max_request_bytes} bytes limit."
    return None


def validate_log_record(log_record: Any, limits: GuardrailLimits = DEFAULT_LIMITS) -> str | None:
    """Reject a `log_record` that is too large, has too many keys, or nests too deep."""
    try:
        size = serialized_size_bytes(log_record)
    except (TypeError, ValueError, RecursionError):
        return "Invalid log_record: payload is not serializable."

    if size > limits.max_log_record_bytes:
        return f"log_record exceeds {limits.max_log_record_bytes} bytes limit."

    key_count, max_depth = inspect_shape(log_record)
    if key_count > limits.max_log_record_keys:
        return f"log_record exceeds {limits.max_log_record_keys} total keys limit."
    if max_depth > limits.max_log_record_depth:
        return f"log_record exceeds max depth of {limits.max_log_record_depth}."
    return None


def serialized_size_bytes(value: Any) -> int:
    """Return the UTF-8 byte length of the compact JSON encoding of `value`.

    Raises `TypeError`/`ValueError` for values JSON cannot represent
    (including NaN/Infinity and circular references).
    """
    encoded = json.dumps(value, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
    return len(encoded.encode("utf-8"))


def inspect_shape(value: Any) -> tuple[int, int]:
    """Return `(key_count, max_depth)` for a JSON-like value in one traversal.

    - Every object key counts once, at any nesting level (inside arrays too).
    - Arrays contribute no keys of their own.
    - The root value is depth 1; each object value or array item is one deeper.
    """
    key_count = 0
    max_depth = 0
    stack: list[tuple[Any, int]] = [(value, 1)]

    while stack:
        current, depth = stack.pop()
        max_depth = max(max_depth, depth)

        if isinstance(current, dict):
            key_count += len(current)
            stack.extend((nested, depth + 1) for nested in current.values())
        elif isinstance(current, (list, tuple)):
            stack.extend((item, depth + 1) for item in current)

    return key_count, max_depth
