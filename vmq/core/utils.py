"""Small numeric helpers shared by the scoring components."""

from __future__ import annotations

import math
from datetime import UTC, datetime


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def round_half_up(x: float) -> int:
    """Round to the nearest integer with halves going up (``round()`` rounds halves to even)."""
    return int(math.floor(x + 0.5))


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO timestamp from a persisted blob; naive values are UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
