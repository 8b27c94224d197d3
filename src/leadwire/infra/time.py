"""Time utilities for consistent timestamp handling."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Protocol


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp, assuming UTC when no offset is given.

    Accepts the trailing "Z" that JavaScript clients send.

    Returns:
        Aware datetime, or None if value is empty or unparseable.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Clock(Protocol):
    """Source of epoch seconds used for TTL bookkeeping."""

    def __call__(self) -> float: ...


def system_clock() -> float:
    """Wall clock in epoch seconds."""
    return time.time()
