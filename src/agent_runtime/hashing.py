"""Deterministic hashing utilities for the agent runtime.

Provides canonical JSON serialization and SHA-256 digests for task inputs,
outputs and result documents. All hashing is deterministic: same input
always produces same output, regardless of dict key ordering or of whether
a large integer arrived as ``int`` or as its decimal string.

Pydantic models are dumped with ``model_dump(mode="json")`` before
normalization, so callers can pass them directly.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

# Largest integer a JSON consumer with IEEE-754 doubles represents exactly.
MAX_SAFE_INTEGER = 2**53 - 1


def normalize(data: Any) -> Any:
    """Convert data into a JSON-stable structure.

    - Integers outside +/- ``MAX_SAFE_INTEGER`` become decimal strings.
    - ``Decimal`` becomes its string form.
    - ``bytes`` become ``0x``-prefixed hex.
    - Tuples and sets become lists (sets sorted by their canonical form).
    - Pydantic models are dumped in JSON mode.
    """
    if isinstance(data, BaseModel):
        return normalize(data.model_dump(mode="json", by_alias=True, exclude_none=True))
    if isinstance(data, bool) or data is None:
        return data
    if isinstance(data, int):
        if abs(data) > MAX_SAFE_INTEGER:
            return str(data)
        return data
    if isinstance(data, Decimal):
        return str(data)
    if isinstance(data, (bytes, bytearray)):
        return "0x" + bytes(data).hex()
    if isinstance(data, dict):
        return {str(key): normalize(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [normalize(item) for item in data]
    if isinstance(data, (set, frozenset)):
        items = [normalize(item) for item in data]
        return sorted(items, key=lambda item: canonical_json(item))
    return data


def canonical_json(data: Any) -> bytes:
    """Serialize data to canonical JSON bytes.

    Uses sorted keys, compact separators, and UTF-8 encoding
    to ensure deterministic output.

    Args:
        data: Any JSON-compatible Python object (after normalization).

    Returns:
        UTF-8 encoded bytes of the canonical JSON string.
    """
    return json.dumps(
        normalize(data),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def digest(data: Any) -> bytes:
    """Return the 32-byte SHA-256 digest of the canonical form of data."""
    return hashlib.sha256(canonical_json(data)).digest()


def hex_digest(data: Any) -> str:
    """Return the SHA-256 hex digest of the canonical form of data."""
    return hashlib.sha256(canonical_json(data)).hexdigest()


def result_hash(result: Any) -> bytes:
    """Compute the 32-byte result hash submitted on-chain with a completion."""
    return digest(result)
