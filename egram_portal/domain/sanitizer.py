# SPDX-License-Identifier: Apache-2.0

"""
Redaction of sensitive fields from arbitrary nested data.

Used before any payload is recorded in the event log or shown back to a user.
"""

from collections.abc import Mapping
from typing import Any, FrozenSet, Set

REDACTED = "[REDACTED]"
CIRCULAR = "[CIRCULAR]"
MAX_DEPTH = "[MAX_DEPTH]"

SENSITIVE_FIELDS: FrozenSet[str] = frozenset(
    ("password", "token", "secret", "key", "auth", "credential")
)

DEFAULT_MAX_DEPTH = 32


def is_sensitive_key(key: Any) -> bool:
    """Check whether a mapping key names sensitive data (case-insensitive substring)."""
    lower_key = str(key).lower()
    return any(field in lower_key for field in SENSITIVE_FIELDS)


def sanitize(value: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> Any:
    """
    Return a copy of ``value`` with sensitive mapping values redacted.

    Mappings become dicts, lists stay lists and tuples stay tuples; every
    other value is returned as is. The input is never mutated. A container
    that contains itself is replaced by ``"[CIRCULAR]"`` and nesting beyond
    ``max_depth`` by ``"[MAX_DEPTH]"``.

    Args:
        value: Data to sanitize
        max_depth: Maximum container nesting to descend into

    Returns:
        Sanitized copy of the data
    """
    return _sanitize(value, 0, max_depth, set())


def _sanitize(value: Any, depth: int, max_depth: int, path: Set[int]) -> Any:
    if not isinstance(value, (Mapping, list, tuple)):
        return value

    if id(value) in path:
        return CIRCULAR
    if depth >= max_depth:
        return MAX_DEPTH

    path.add(id(value))
    try:
        if isinstance(value, Mapping):
            return {
                key: REDACTED if is_sensitive_key(key) else _sanitize(item, depth + 1, max_depth, path)
                for key, item in value.items()
            }

        items = [_sanitize(item, depth + 1, max_depth, path) for item in value]
        return tuple(items) if isinstance(value, tuple) else items
    finally:
        path.discard(id(value))
