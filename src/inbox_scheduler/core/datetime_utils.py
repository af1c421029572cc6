"""Datetime helpers shared across the application.

Due times travel as epoch milliseconds, the unit used by the browser client
and by the durable alarm table.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime

__all__ = [
    "now_ms",
    "to_epoch_ms",
    "from_epoch_ms",
    "display_epoch_ms",
]


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def to_epoch_ms(value: datetime) -> int:
    """Convert ``value`` to epoch milliseconds, treating naive values as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int | None) -> datetime | None:
    """Return a timezone-aware UTC ``datetime`` for ``value``."""
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def display_epoch_ms(value: int | None) -> str | None:
    """Return a user-friendly local-time representation of ``value``."""
    moment = from_epoch_ms(value)
    if moment is None:
        return None
    return moment.astimezone().strftime("%b %d, %Y %I:%M %p")
