"""
Deterministic hashing for content-based change detection.

A CDF object's ``hash`` attribute is a digest of its serialized attribute
payload: it changes if and only if meaningful content changes. Trackers
compare stored hashes against incoming ones instead of trusting
timestamps, which is what makes re-delivery and re-export idempotent.

Architecture:
    ::

        Content Hash (change detection):
        ┌────────────────────────────────────────────────────────────┐
        │ h = compute_payload_hash({"title": {...}, "body": {...}})  │
        │                                                            │
        │ Same attributes (any key order) → Same hash               │
        │ Different attribute values      → Different hash          │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> compute_hash("a", "b") == compute_hash("a", "b")
    True
    >>> compute_payload_hash({"b": 1, "a": 2}) == compute_payload_hash({"a": 2, "b": 1})
    True

Tags:
    hashing, idempotency, change-detection, cdf-sync

Doc-Types:
    - API Reference
"""

import hashlib
import json
from typing import Any

HASH_LENGTH = 40


def compute_hash(*values: Any, length: int = HASH_LENGTH) -> str:
    """
    Compute deterministic hash from values.

    Args:
        *values: Values to hash (converted to strings, '|' delimited)
        length: Hex digest length

    Returns:
        Hex string of specified length
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def compute_payload_hash(payload: Any, length: int = HASH_LENGTH) -> str:
    """
    Hash a JSON-compatible payload independent of dict key order.

    Args:
        payload: Nested dict/list structure (e.g. CDF attributes)
        length: Hex digest length

    Returns:
        Hex string of specified length
    """
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()[:length]
