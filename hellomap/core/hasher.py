"""
Canonical Serialization and Fingerprints

Two uses:
- Detect that the ledger file changed between load and commit
- Decide whether a migrated document differs from what is on disk

CANONICAL SERIALIZATION RULES:
1. Top-level must be a dict
2. Dictionary keys sorted recursively
3. No extra whitespace, ASCII only
4. Sets are rejected (no stable ordering)
"""

import hashlib
import json
from typing import Any


class CanonicalSerializationError(Exception):
    """Raised when data cannot be canonically serialized."""
    pass


class Hasher:
    """Canonical JSON and SHA-256 fingerprints."""

    @classmethod
    def _check(cls, value: Any, path: str = "") -> None:
        if isinstance(value, (set, frozenset)):
            raise CanonicalSerializationError(
                f"Cannot serialize set at {path or 'root'}: sets have no stable order"
            )
        if isinstance(value, dict):
            for k, v in value.items():
                if not isinstance(k, str):
                    raise CanonicalSerializationError(
                        f"Non-string key {k!r} at {path or 'root'}"
                    )
                cls._check(v, f"{path}.{k}" if path else k)
        elif isinstance(value, (list, tuple)):
            for i, v in enumerate(value):
                cls._check(v, f"{path}[{i}]")

    @classmethod
    def canonicalize(cls, data: Any) -> str:
        if not isinstance(data, dict):
            raise CanonicalSerializationError(
                f"Top-level value must be a dict, got {type(data).__name__}"
            )
        cls._check(data)
        return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=True)

    @staticmethod
    def fingerprint_bytes(raw: bytes) -> str:
        return hashlib.sha256(raw).hexdigest()

    @classmethod
    def hash_data(cls, data: dict) -> str:
        return hashlib.sha256(cls.canonicalize(data).encode("ascii")).hexdigest()
