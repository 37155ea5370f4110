"""ID and timestamp generation utilities."""

import uuid
from datetime import datetime, timezone


def generate_id() -> str:
    """Generate a fresh random UUID string."""
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    """Current UTC time as a fixed-width ISO 8601 string.

    Millisecond precision with a ``Z`` suffix, so plain string comparison
    orders timestamps chronologically.
    """
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )
