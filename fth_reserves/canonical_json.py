"""
Canonical JSON serialization for deterministic hashing and audit payloads.

Two flavours:

    canonical_json(obj)
        Sorted keys, no whitespace, UTF-8. Used for payload summaries and
        memo bodies where key order carries no meaning.

    ordered_json(obj)
        Declared key order, no whitespace, UTF-8. Used where the key order
        is itself part of a cross-system contract (the PoR snapshot hash
        input). Callers build the dict in the contractual order; this
        function never reorders it.
"""

import json
from typing import Any


def canonical_json(obj: Any) -> str:
    """
    Serialize object to canonical JSON string.

    Rules:
    - Keys sorted alphabetically (recursive)
    - No whitespace
    - UTF-8 encoding (no ASCII escapes for non-ASCII chars)
    - NaN/Infinity rejected
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def ordered_json(obj: Any) -> str:
    """
    Serialize preserving insertion order of keys.

    Same whitespace and escaping rules as canonical_json(); only the
    key-sorting step is skipped.
    """
    return json.dumps(
        obj,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def ordered_json_bytes(obj: Any) -> bytes:
    """Serialize to order-preserving JSON as UTF-8 bytes."""
    return ordered_json(obj).encode("utf-8")
