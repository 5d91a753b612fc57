"""
Reward Calculator.

XP for one answer:

    xp = base
    xp += floor(streak * 0.5)      if streak >= 3
    xp += ceil(base * 0.3)         if response < 5000 ms
    xp  = floor(xp * combo)
    xp  = floor(xp * 0.5)          if a hint was used

Wrong answers earn the configured wrong-answer XP (0 by default).
``compute_reward`` is pure; ``RewardCalculator`` adds the feedback text shown
to the learner.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from vmq.core.errors import InvalidArgument
from vmq.core.models import COMBO_MIN


@dataclass
class RewardConfig:
    """Reward tuning."""

    base_xp: int = 5
    wrong_answer_xp: int = 0
    streak_bonus_threshold: int = 3
    streak_bonus_rate: float = 0.5
    response_time_bonus_ms: int = 5000
    speed_bonus_rate: float = 0.3
    hint_penalty: float = 0.5
    perfect_streak_threshold: int = 10
    fast_feedback_ms: int = 2000
    lower_difficulty_after_wrong: int = 3

    @classmethod
    def from_settings(cls, settings: Any) -> RewardConfig:
        return cls(
            base_xp=settings.base_xp,
            wrong_answer_xp=settings.wrong_answer_xp,
            streak_bonus_threshold=settings.streak_bonus_threshold,
            response_time_bonus_ms=settings.response_time_bonus_ms,
            hint_penalty=settings.hint_penalty,
            perfect_streak_threshold=settings.perfect_streak_threshold,
        )


@dataclass(frozen=True)
class RewardResult:
    """XP for one answer plus the message shown with it. Never persisted."""

    xp_awarded: int
    feedback_message: str
    breakdown: dict[str, int] = field(default_factory=dict)


def _check_non_negative(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidArgument(f"{name} must be a finite number, got {value!r}")
    if value < 0:
        raise InvalidArgument(f"{name} must be >= 0, got {value!r}")


def reward_breakdown(
    correct: bool,
    response_time_ms: int,
    streak: int,
    combo_multiplier: float,
    used_hint: bool,
    base_xp: int | None = None,
    config: RewardConfig | None = None,
) -> dict[str, int]:
    """
    Step-by-step XP computation.

    Keys: ``base``, ``streak_bonus``, ``speed_bonus``, ``after_combo``,
    ``hint_penalty`` (XP removed by the hint) and ``total``.

    Raises:
        InvalidArgument: negative or non-numeric inputs
    """
    config = config or RewardConfig()
    base = config.base_xp if base_xp is None else base_xp
    _check_non_negative("response_time_ms", response_time_ms)
    _check_non_negative("streak", streak)
    _check_non_negative("base_xp", base)
    _check_non_negative("combo_multiplier", combo_multiplier)

    if not correct:
        wrong = max(0, int(config.wrong_answer_xp))
        return {
            "base": 0, "streak_bonus": 0, "speed_bonus": 0,
            "after_combo": wrong, "hint_penalty": 0, "total": wrong,
        }

    streak_bonus = 0
    if streak >= config.streak_bonus_threshold:
        streak_bonus = math.floor(streak * config.streak_bonus_rate)

    speed_bonus = 0
    if response_time_ms < config.response_time_bonus_ms:
        speed_bonus = math.ceil(base * config.speed_bonus_rate)

    xp = base + streak_bonus + speed_bonus
    after_combo = math.floor(xp * max(COMBO_MIN, combo_multiplier))

    total = after_combo
    if used_hint:
        total = math.floor(after_combo * config.hint_penalty)
    total = max(0, int(total))

    return {
        "base": int(base),
        "streak_bonus": streak_bonus,
        "speed_bonus": speed_bonus,
        "after_combo": after_combo,
        "hint_penalty": after_combo - total if used_hint else 0,
        "total": total,
    }


def compute_reward(
    correct: bool,
    response_time_ms: int,
    streak: int,
    combo_multiplier: float,
    used_hint: bool,
    base_xp: int | None = None,
    config: RewardConfig | None = None,
) -> int:
    """
    XP awarded for one answer (integer >= 0).

    Args:
        correct: Whether the answer was right
        response_time_ms: Answer time
        streak: Streak before this answer
        combo_multiplier: Combo before this answer (values below 1.0 count as 1.0)
        used_hint: Whether a hint was revealed
        base_xp: Base XP (defaults to the config's)
        config: RewardConfig or None for defaults
    """
    return reward_breakdown(
        correct, response_time_ms, streak, combo_multiplier, used_hint, base_xp, config
    )["total"]


class RewardCalculator:
    """Computes XP and the feedback message for an answer."""

    def __init__(self, config: RewardConfig | None = None):
        self.config = config or RewardConfig()

    def reward(
        self,
        correct: bool,
        response_time_ms: int,
        streak: int,
        combo_multiplier: float,
        used_hint: bool = False,
        perfect_streak: int = 0,
        consecutive_wrong: int = 0,
        correct_answer: str | None = None,
    ) -> RewardResult:
        """
        Reward one answer.

        ``streak``, ``combo_multiplier`` and ``perfect_streak`` are the values
        before this answer. ``consecutive_wrong`` includes this answer.
        """
        breakdown = reward_breakdown(
            correct, response_time_ms, streak, combo_multiplier, used_hint, config=self.config
        )
        xp = breakdown["total"]
        return RewardResult(
            xp_awarded=xp,
            feedback_message=self.feedback(
                correct, xp, response_time_ms, streak, perfect_streak,
                consecutive_wrong, correct_answer,
            ),
            breakdown=breakdown,
        )

    def feedback(
        self,
        correct: bool,
        xp: int,
        response_time_ms: int,
        streak: int,
        perfect_streak: int = 0,
        consecutive_wrong: int = 0,
        correct_answer: str | None = None,
    ) -> str:
        if not correct:
            message = f"Correct answer: {correct_answer}." if correct_answer else "Not quite."
            if consecutive_wrong >= self.config.lower_difficulty_after_wrong:
                message += " Consider lowering difficulty."
            return message

        threshold = self.config.perfect_streak_threshold
        if perfect_streak >= threshold:
            return f"PERFECT STREAK! +{xp} XP"
        if streak + 1 >= threshold:
            return f"{streak + 1} streak! +{xp} XP"
        if response_time_ms < self.config.fast_feedback_ms:
            return f"Fast! +{xp} XP"
        return f"Correct! +{xp} XP"
