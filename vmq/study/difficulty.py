"""
Difficulty Adapter.

Per-module state machine over ordered difficulty tiers
(beginner -> intermediate -> advanced by default).

Evaluation cadence:
- Counters and the recent window update on every answer
- Transitions are considered only when total answers % eval_interval == 0

Transition rules (first match wins):
1. PROMOTE: recent accuracy > 0.85 and 0 < avg response time < tier ceiling
   (3500ms from beginner, 3000ms from intermediate), not at top tier
2. DEMOTE: recent accuracy < tier floor (0.5 advanced, 0.4 intermediate)
   and >= 5 consecutive wrong answers, not at bottom tier
3. HOLD
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from vmq.core.collaborators import LevelChanged, NotificationSink, NullNotificationSink, StorageBackend
from vmq.core.errors import InvalidArgument, InvalidState
from vmq.core.models import ModuleStats, PerformanceSample, validate_module
from vmq.core.utils import format_timestamp, parse_timestamp, utcnow
from vmq.delivery.state_store import difficulty_key, read_blob, write_through

DEFAULT_LEVELS: tuple[str, ...] = ("beginner", "intermediate", "advanced")


class DifficultyAction(str, Enum):
    PROMOTE = "promote"
    DEMOTE = "demote"
    HOLD = "hold"


@dataclass
class DifficultyConfig:
    """Configuration for difficulty adaptation."""

    levels: tuple[str, ...] = DEFAULT_LEVELS
    eval_interval: int = 5
    window_size: int = 20
    min_samples: int = 6
    neutral_accuracy: float = 0.5
    promote_accuracy: float = 0.85
    promote_time_ms: dict[str, float] = field(
        default_factory=lambda: {"beginner": 3500, "intermediate": 3000}
    )
    default_promote_time_ms: float = 3000
    demote_accuracy: dict[str, float] = field(
        default_factory=lambda: {"advanced": 0.5, "intermediate": 0.4}
    )
    default_demote_accuracy: float = 0.4
    demote_consecutive_wrong: int = 5

    def __post_init__(self):
        self.levels = tuple(self.levels)
        if not self.levels:
            raise InvalidArgument("at least one difficulty level is required")
        if len(set(self.levels)) != len(self.levels):
            raise InvalidArgument(f"difficulty levels must be unique: {self.levels}")
        if self.eval_interval < 1:
            raise InvalidArgument("eval_interval must be >= 1")

    @classmethod
    def from_settings(cls, settings: Any) -> DifficultyConfig:
        return cls(
            levels=tuple(settings.difficulty_levels),
            eval_interval=settings.eval_interval,
            window_size=settings.history_size,
            min_samples=settings.min_window_samples,
            promote_accuracy=settings.promote_accuracy,
            promote_time_ms={
                "beginner": settings.promote_time_beginner_ms,
                "intermediate": settings.promote_time_intermediate_ms,
            },
            demote_accuracy={
                "advanced": settings.demote_accuracy_advanced,
                "intermediate": settings.demote_accuracy_intermediate,
            },
            demote_consecutive_wrong=settings.demote_consecutive_wrong,
        )

    def promote_time_for(self, level: str) -> float:
        return self.promote_time_ms.get(level, self.default_promote_time_ms)

    def demote_accuracy_for(self, level: str) -> float:
        return self.demote_accuracy.get(level, self.default_demote_accuracy)


@dataclass
class DifficultyState:
    """Adaptation state for one module."""

    module: str
    current_level: str
    consecutive_wrong: int = 0
    consecutive_correct: int = 0
    recent_window: deque[PerformanceSample] = field(default_factory=lambda: deque(maxlen=20))
    last_change_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": self.module,
            "current_level": self.current_level,
            "consecutive_wrong": self.consecutive_wrong,
            "consecutive_correct": self.consecutive_correct,
            "recent_window": [s.to_dict() for s in self.recent_window],
            "last_change_at": format_timestamp(self.last_change_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], window_size: int = 20) -> DifficultyState:
        """Create from a persisted blob; unreadable fields fall back to zero values."""
        def _count(key: str) -> int:
            try:
                return max(0, int(data.get(key, 0) or 0))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring malformed {key} for {data.get('module')!r}: {data.get(key)!r}")
                return 0

        raw_window = data.get("recent_window") or []
        if not isinstance(raw_window, list):
            logger.warning(f"Ignoring malformed recent_window for {data.get('module')!r}")
            raw_window = []
        window = deque(
            (PerformanceSample.from_dict(s) for s in raw_window if isinstance(s, dict)),
            maxlen=window_size,
        )
        try:
            last_change = parse_timestamp(data.get("last_change_at"))
        except (TypeError, ValueError):
            last_change = None
        return cls(
            module=str(data.get("module", "")),
            current_level=str(data.get("current_level", "")),
            consecutive_wrong=_count("consecutive_wrong"),
            consecutive_correct=_count("consecutive_correct"),
            recent_window=window,
            last_change_at=last_change,
        )


@dataclass(frozen=True)
class DifficultyChange:
    """Outcome of one observation."""

    module: str
    action: DifficultyAction
    old_level: str
    new_level: str
    recent_accuracy: float
    evaluated: bool
    toast_message: str | None = None

    @property
    def changed(self) -> bool:
        return self.action is not DifficultyAction.HOLD


@dataclass(frozen=True)
class Recommendation:
    """Coaching hint for a module."""

    module: str
    action: str  # "focus" | "advance"
    reason: str
    priority: str  # "high" | "medium"
    level: str


def recent_accuracy(
    window: Iterable[PerformanceSample],
    min_samples: int = 6,
    neutral: float = 0.5,
) -> float:
    """
    Fraction correct over the window.

    With fewer than ``min_samples`` samples the neutral value is returned.
    """
    samples = list(window)
    if len(samples) < min_samples:
        return neutral
    return sum(1 for s in samples if s.correct) / len(samples)


class DifficultyAdapter:
    """
    Owns DifficultyState per module and decides tier transitions.

    Level changes are pushed to the injected NotificationSink; holds are silent.
    """

    def __init__(
        self,
        storage: StorageBackend,
        notifier: NotificationSink | None = None,
        config: DifficultyConfig | None = None,
        log: Any = None,
    ):
        self.storage = storage
        self.notifier = notifier or NullNotificationSink()
        self.config = config or DifficultyConfig()
        self.log = log or logger.bind(component="difficulty")

        self._states: dict[str, DifficultyState] = {}

    # =========================================================================
    # Observation
    # =========================================================================

    def observe(
        self,
        module: str,
        correct: bool,
        response_time_ms: int,
        total: int,
        avg_response_time_ms: float,
    ) -> DifficultyChange:
        """
        Record an answer and, on cadence, evaluate a tier transition.

        Args:
            module: Skill module
            correct: Answer outcome
            response_time_ms: Response time of this answer
            total: Module's total answers including this one
            avg_response_time_ms: Module's running mean response time

        Returns:
            DifficultyChange (HOLD with evaluated=False when off cadence)
        """
        state = self._ensure(validate_module(module))
        correct = bool(correct)

        if correct:
            state.consecutive_correct += 1
            state.consecutive_wrong = 0
        else:
            state.consecutive_wrong += 1
            state.consecutive_correct = 0
        state.recent_window.append(PerformanceSample(correct, int(response_time_ms)))

        acc = self.recent_accuracy(module)
        old_level = state.current_level
        on_cadence = total > 0 and total % self.config.eval_interval == 0

        if not on_cadence:
            write_through(self.storage, difficulty_key(module), state.to_dict(), self.log)
            return DifficultyChange(module, DifficultyAction.HOLD, old_level, old_level, acc, False)

        try:
            action = self.decide(state, avg_response_time_ms)
        except InvalidState as e:
            self.log.error(f"{module}: {e}; holding current state")
            write_through(self.storage, difficulty_key(module), state.to_dict(), self.log)
            return DifficultyChange(module, DifficultyAction.HOLD, old_level, old_level, acc, True)

        new_level = old_level
        toast = None
        if action is not DifficultyAction.HOLD:
            index = self.config.levels.index(old_level)
            new_level = self.config.levels[index + (1 if action is DifficultyAction.PROMOTE else -1)]
            state.current_level = new_level
            state.last_change_at = utcnow()
            toast = self._toast(action, new_level)
            self.log.info(
                f"{module}: {old_level} -> {new_level} "
                f"(accuracy {acc:.0%}, avg {avg_response_time_ms:.0f}ms)"
            )

        write_through(self.storage, difficulty_key(module), state.to_dict(), self.log)

        if toast is not None:
            self.notifier.notify(LevelChanged(
                module=module,
                old_level=old_level,
                new_level=new_level,
                direction="up" if action is DifficultyAction.PROMOTE else "down",
                toast_message=toast,
            ))

        return DifficultyChange(module, action, old_level, new_level, acc, True, toast)

    def decide(self, state: DifficultyState, avg_response_time_ms: float) -> DifficultyAction:
        """
        Pure transition decision for a state.

        Raises:
            InvalidState: current level is not one of the configured levels
        """
        levels = self.config.levels
        if state.current_level not in levels:
            raise InvalidState(
                f"level {state.current_level!r} is not one of {list(levels)}"
            )

        index = levels.index(state.current_level)
        acc = recent_accuracy(
            state.recent_window, self.config.min_samples, self.config.neutral_accuracy
        )

        if (
            index < len(levels) - 1
            and acc > self.config.promote_accuracy
            and 0 < avg_response_time_ms < self.config.promote_time_for(state.current_level)
        ):
            return DifficultyAction.PROMOTE

        if (
            index > 0
            and acc < self.config.demote_accuracy_for(state.current_level)
            and state.consecutive_wrong >= self.config.demote_consecutive_wrong
        ):
            return DifficultyAction.DEMOTE

        return DifficultyAction.HOLD

    # =========================================================================
    # Queries & overrides
    # =========================================================================

    def current_level(self, module: str) -> str:
        return self._ensure(validate_module(module)).current_level

    def state(self, module: str) -> DifficultyState:
        """Snapshot of the module's state."""
        state = self._ensure(validate_module(module))
        return DifficultyState.from_dict(state.to_dict(), self.config.window_size)

    def recent_accuracy(self, module: str) -> float:
        state = self._ensure(validate_module(module))
        return recent_accuracy(
            state.recent_window, self.config.min_samples, self.config.neutral_accuracy
        )

    def set_level(self, module: str, level: str) -> DifficultyState:
        """
        Manually choose a tier (e.g. from the settings screen).

        Raises:
            InvalidArgument: level is not configured
        """
        module = validate_module(module)
        if level not in self.config.levels:
            raise InvalidArgument(f"unknown difficulty level {level!r}; expected one of {list(self.config.levels)}")
        state = self._ensure(module)
        if state.current_level != level:
            state.current_level = level
            state.last_change_at = utcnow()
            write_through(self.storage, difficulty_key(module), state.to_dict(), self.log)
        return self.state(module)

    def recommendations(self, stats_by_module: Mapping[str, ModuleStats]) -> list[Recommendation]:
        """
        Modules that need focus or are ready to advance.

        - focus (high): recent accuracy below 70% after more than 3 answers
        - advance (medium): recent accuracy above 90% and not at the top tier
        """
        recs: list[Recommendation] = []
        top = self.config.levels[-1]

        for module, stats in stats_by_module.items():
            state = self._ensure(validate_module(module))
            window = list(state.recent_window)
            if not window:
                continue
            pct = 100 * sum(1 for s in window if s.correct) / len(window)

            if pct < 70 and stats.total > 3:
                recs.append(Recommendation(
                    module=module,
                    action="focus",
                    reason=f"Struggling ({pct:.0f}%)",
                    priority="high",
                    level=state.current_level,
                ))
            elif pct > 90 and state.current_level != top and state.current_level in self.config.levels:
                next_level = self.config.levels[self.config.levels.index(state.current_level) + 1]
                recs.append(Recommendation(
                    module=module,
                    action="advance",
                    reason=f"Ready for {next_level} ({pct:.0f}%)",
                    priority="medium",
                    level=state.current_level,
                ))

        return sorted(recs, key=lambda r: (0 if r.priority == "high" else 1, r.module))

    # =========================================================================
    # Internals
    # =========================================================================

    def _ensure(self, module: str) -> DifficultyState:
        state = self._states.get(module)
        if state is not None:
            return state

        blob = read_blob(self.storage, difficulty_key(module), None, self.log)
        if isinstance(blob, dict):
            state = DifficultyState.from_dict(blob, self.config.window_size)
            state.module = module
        else:
            state = DifficultyState(
                module=module,
                current_level=self.config.levels[0],
                recent_window=deque(maxlen=self.config.window_size),
            )
        self._states[module] = state
        return state

    @staticmethod
    def _toast(action: DifficultyAction, level: str) -> str:
        name = level.replace("_", " ").title()
        if action is DifficultyAction.PROMOTE:
            return f"Moving to {name}!"
        return f"Back to {name}"
