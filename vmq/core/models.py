"""
Core Domain Models.

Shared data shapes for the practice engine:
- AnswerEvent: one practice-question outcome (immutable)
- PerformanceSample: the {correct, response time} unit kept in ring buffers
- ModuleStats: running per-module aggregate owned by the AnswerRecorder

Persisted shapes round-trip through ``to_dict()``/``from_dict()`` as plain
JSON-serializable dicts; the storage layer treats them as opaque blobs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from loguru import logger

from .errors import InvalidArgument
from .utils import clamp, format_timestamp, parse_timestamp, utcnow

COMBO_MIN = 1.0
COMBO_MAX = 3.0


# =============================================================================
# Input validation
# =============================================================================


def validate_module(module: Any) -> str:
    """Return the module identifier or raise InvalidArgument."""
    if not isinstance(module, str) or not module.strip():
        raise InvalidArgument(f"module must be a non-empty string, got {module!r}")
    return module


def validate_response_time(response_time_ms: Any) -> int:
    """Return a non-negative integer response time or raise InvalidArgument."""
    if isinstance(response_time_ms, bool) or not isinstance(response_time_ms, (int, float)):
        raise InvalidArgument(f"response_time_ms must be a number, got {response_time_ms!r}")
    if not math.isfinite(response_time_ms) or response_time_ms < 0:
        raise InvalidArgument(f"response_time_ms must be >= 0, got {response_time_ms!r}")
    return int(response_time_ms)


def clamp_response_time(value: Any) -> int:
    """
    Coerce a raw timer reading into a valid response time.

    Negative, non-numeric and non-finite values become 0. Use this at the UI
    edge when a broken timer should not abort the answer.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number) or number < 0:
        return 0
    return int(number)


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class PerformanceSample:
    """One entry of a recent-performance window."""

    correct: bool
    response_time_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {"correct": self.correct, "response_time_ms": self.response_time_ms}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PerformanceSample:
        return cls(
            correct=bool(data.get("correct", False)),
            response_time_ms=clamp_response_time(data.get("response_time_ms", 0)),
        )


@dataclass(frozen=True)
class AnswerEvent:
    """A single practice-question outcome. Never mutated after creation."""

    module: str
    correct: bool
    response_time_ms: int
    used_hint: bool = False
    timestamp: datetime = field(default_factory=utcnow)
    item_id: str | None = None

    @property
    def sample(self) -> PerformanceSample:
        return PerformanceSample(self.correct, self.response_time_ms)


# =============================================================================
# Module statistics
# =============================================================================


@dataclass
class ModuleStats:
    """Running aggregate of answers for one skill module."""

    module: str
    correct: int = 0
    total: int = 0
    streak: int = 0
    longest_streak: int = 0
    perfect_streak: int = 0
    avg_response_time_ms: float = 0.0
    combo_multiplier: float = COMBO_MIN
    last_answered_at: datetime | None = None

    def copy(self) -> ModuleStats:
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "module": self.module,
            "correct": self.correct,
            "total": self.total,
            "streak": self.streak,
            "longest_streak": self.longest_streak,
            "perfect_streak": self.perfect_streak,
            "avg_response_time_ms": self.avg_response_time_ms,
            "combo_multiplier": self.combo_multiplier,
            "last_answered_at": format_timestamp(self.last_answered_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], combo_max: float = COMBO_MAX) -> ModuleStats:
        """
        Create from a persisted blob.

        Persisted data is untrusted: counters are floored at zero, ``correct``
        is capped at ``total`` and the combo multiplier is clamped. Repairs
        are logged.
        """
        def _int(key: str) -> int:
            try:
                return max(0, int(data.get(key, 0) or 0))
            except (TypeError, ValueError):
                return 0

        def _float(key: str, default: float) -> float:
            try:
                value = float(data.get(key, default))
            except (TypeError, ValueError):
                return default
            return value if math.isfinite(value) else default

        total = _int("total")
        correct = _int("correct")
        combo = _float("combo_multiplier", COMBO_MIN)
        avg = max(0.0, _float("avg_response_time_ms", 0.0))

        if correct > total or not (COMBO_MIN <= combo <= combo_max):
            logger.warning(
                f"Repairing persisted stats for {data.get('module')!r}: "
                f"correct={correct} total={total} combo={combo}"
            )
        stats = cls(
            module=str(data.get("module", "")),
            correct=min(correct, total),
            total=total,
            streak=_int("streak"),
            longest_streak=_int("longest_streak"),
            perfect_streak=_int("perfect_streak"),
            avg_response_time_ms=avg,
            combo_multiplier=clamp(combo, COMBO_MIN, combo_max),
        )
        try:
            stats.last_answered_at = parse_timestamp(data.get("last_answered_at"))
        except ValueError:
            stats.last_answered_at = None
        stats.longest_streak = max(stats.longest_streak, stats.streak)
        return stats
