"""Canonical encoding and SHA-256 content hashing for ledgers.

The canonical form is compact JSON: object keys sorted, lists kept in order,
no ASCII escaping, UTF-8 bytes. Lone surrogates are passed through rather than
rejected so any Python string can be hashed.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

HASH_HEX_LENGTH = 64


def canonical_bytes(payload: Any) -> bytes:
    """Deterministic byte encoding of JSON-safe data."""
    text = json.dumps(
        payload,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        allow_nan=False,
    )
    return text.encode("utf-8", "surrogatepass")


def content_hash(payload: Any) -> str:
    """Lowercase hex SHA-256 of the canonical encoding."""
    return hashlib.sha256(canonical_bytes(payload)).hexdigest()


def chain_hash(previous: str, payload: Any) -> str:
    """Extend a running hash: sha256(previous digest || canonical(payload))."""
    digest = hashlib.sha256(bytes.fromhex(previous))
    digest.update(canonical_bytes(payload))
    return digest.hexdigest()


def is_valid_hash(value: str) -> bool:
    if len(value) != HASH_HEX_LENGTH:
        return False
    return all(c in "0123456789abcdef" for c in value)
