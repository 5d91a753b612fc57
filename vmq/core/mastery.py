"""
Core Mastery Module.

Turns recorded ModuleStats into an accuracy grade and a composite mastery
score. Everything here is pure: no storage, no logging, no clock.

Design:
- Grade: letter grade enum with fixed inclusive lower bounds
- MasteryReport: dataclass returned by compute_mastery
- compute_mastery: accuracy %, grade, composite score, status label
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from .models import ModuleStats, PerformanceSample
from .utils import round_half_up


class Grade(str, Enum):
    """Letter grade for a module's lifetime accuracy."""

    S_PLUS = "S+"
    S = "S"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C_PLUS = "C+"
    C = "C"
    D = "D"
    F = "F"

    @classmethod
    def from_accuracy(
        cls,
        accuracy_pct: float,
        thresholds: Sequence[tuple[float, Grade]] | None = None,
    ) -> Grade:
        """
        Convert a 0-100 accuracy to a grade.

        Args:
            accuracy_pct: Accuracy percentage
            thresholds: (inclusive lower bound, grade) pairs, highest first

        Returns:
            First grade whose bound is met, else F
        """
        for bound, grade in thresholds or GRADE_THRESHOLDS:
            if accuracy_pct >= bound:
                return grade
        return cls.F

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        if self in (Grade.S_PLUS, Grade.S, Grade.A):
            return "green"
        if self in (Grade.B_PLUS, Grade.B):
            return "cyan"
        if self in (Grade.C_PLUS, Grade.C):
            return "yellow"
        return "red"


GRADE_THRESHOLDS: tuple[tuple[float, Grade], ...] = (
    (97, Grade.S_PLUS),
    (95, Grade.S),
    (90, Grade.A),
    (85, Grade.B_PLUS),
    (80, Grade.B),
    (75, Grade.C_PLUS),
    (70, Grade.C),
    (60, Grade.D),
)

# Composite score weights
WEIGHT_LIFETIME = 0.6
WEIGHT_RECENT = 0.3
WEIGHT_STREAK = 0.1
STREAK_SATURATION = 10


@dataclass(frozen=True)
class MasteryReport:
    """Mastery picture for one module."""

    module: str
    accuracy_pct: int
    grade: Grade
    mastery_score: float  # 0-1 composite
    status: str  # not-started | needs-work | learning | mastered
    total: int
    streak: int
    longest_streak: int


def accuracy_pct(correct: int, total: int) -> int:
    """Whole-number accuracy percentage; 0 when nothing was answered."""
    if total <= 0:
        return 0
    return round_half_up(100 * correct / total)


def window_accuracy(samples: Iterable[PerformanceSample]) -> float | None:
    """Fraction correct over the samples, or None for an empty window."""
    samples = list(samples)
    if not samples:
        return None
    return sum(1 for s in samples if s.correct) / len(samples)


def mastery_status(accuracy: int, total: int) -> str:
    if total <= 0:
        return "not-started"
    if accuracy >= 80:
        return "mastered"
    if accuracy >= 50:
        return "learning"
    return "needs-work"


def compute_mastery(
    stats: ModuleStats,
    recent: Iterable[PerformanceSample] | None = None,
    thresholds: Sequence[tuple[float, Grade]] | None = None,
) -> MasteryReport:
    """
    Compute accuracy, grade and composite mastery for a module.

    Formula: score = 0.6 × lifetime + 0.3 × recent + 0.1 × min(longest_streak / 10, 1)

    Args:
        stats: Recorded module statistics
        recent: Recent-performance window (lifetime accuracy stands in when empty)
        thresholds: Optional grade boundaries overriding GRADE_THRESHOLDS

    Returns:
        MasteryReport
    """
    pct = accuracy_pct(stats.correct, stats.total)
    lifetime = stats.correct / stats.total if stats.total > 0 else 0.0

    recent_acc = window_accuracy(recent or ())
    if recent_acc is None:
        recent_acc = lifetime

    streak_component = min(stats.longest_streak / STREAK_SATURATION, 1.0)
    score = (
        WEIGHT_LIFETIME * lifetime
        + WEIGHT_RECENT * recent_acc
        + WEIGHT_STREAK * streak_component
    )

    return MasteryReport(
        module=stats.module,
        accuracy_pct=pct,
        grade=Grade.from_accuracy(pct, thresholds),
        mastery_score=round(score, 4),
        status=mastery_status(pct, stats.total),
        total=stats.total,
        streak=stats.streak,
        longest_streak=stats.longest_streak,
    )
