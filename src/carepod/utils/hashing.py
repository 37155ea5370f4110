"""Content hashing helpers.

Hashes here detect accidental or naive tampering only. They are not signed
and prove nothing about who wrote a record.
"""

import hashlib
import json
from typing import Any, Mapping


def sha256_hex(text: str) -> str:
    """Return the hex SHA-256 digest of a UTF-8 string."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def canonical_json(data: Mapping[str, Any]) -> str:
    """Compact JSON encoding with sorted keys.

    Non-ASCII characters are kept as-is so the encoding matches the one
    produced by browser clients writing the same records.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def terms_hash(version: str, text: str) -> str:
    """Hash binding a terms version label to its exact text."""
    return sha256_hex(f"{version}::{text}")
