"""
Answer Event Recorder.

Folds each practice answer into the running ModuleStats of its module:
- correct/total counters, current/longest/perfect streaks
- incremental mean response time
- combo multiplier (+0.1 per correct answer, capped; reset on a miss)
- bounded recent-history ring buffer for windowed calculations

Stats and the recent history are written through to storage after every
mutation. Storage failures are logged and never affect the returned stats.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from vmq.core.collaborators import StorageBackend
from vmq.core.models import (
    COMBO_MAX,
    COMBO_MIN,
    ModuleStats,
    PerformanceSample,
    validate_module,
    validate_response_time,
)
from vmq.core.utils import utcnow
from vmq.delivery.state_store import read_blob, stats_key, write_through


@dataclass
class RecorderConfig:
    """Configuration for the answer recorder."""

    history_size: int = 20
    combo_step: float = 0.1
    combo_max: float = COMBO_MAX

    @classmethod
    def from_settings(cls, settings: Any) -> RecorderConfig:
        return cls(
            history_size=settings.history_size,
            combo_step=settings.combo_step,
            combo_max=settings.combo_max,
        )


class AnswerRecorder:
    """
    Owns every module's ModuleStats and recent-answer history.

    Stats are only mutated through ``record_answer`` and ``reset_module``;
    readers always receive copies.
    """

    def __init__(
        self,
        storage: StorageBackend,
        config: RecorderConfig | None = None,
        log: Any = None,
    ):
        self.storage = storage
        self.config = config or RecorderConfig()
        self.log = log or logger.bind(component="recorder")

        self._stats: dict[str, ModuleStats] = {}
        self._history: dict[str, deque[PerformanceSample]] = {}

    # =========================================================================
    # Recording
    # =========================================================================

    def record_answer(
        self,
        module: str,
        correct: bool,
        response_time_ms: int,
        used_hint: bool = False,
        timestamp: datetime | None = None,
    ) -> ModuleStats:
        """
        Fold one answer into the module's stats.

        Args:
            module: Skill module identifier (created on first use)
            correct: Whether the answer was right
            response_time_ms: Time from question display to answer (>= 0)
            used_hint: Whether a hint was revealed before answering
            timestamp: Answer time (defaults to now, UTC)

        Returns:
            Copy of the updated ModuleStats

        Raises:
            InvalidArgument: empty/non-string module or invalid response time
        """
        module = validate_module(module)
        response_time_ms = validate_response_time(response_time_ms)
        correct = bool(correct)
        used_hint = bool(used_hint)

        stats = self._ensure(module)
        old_total = stats.total

        stats.total += 1
        if correct:
            stats.correct += 1
            stats.streak += 1
            stats.combo_multiplier = round(
                min(self.config.combo_max, stats.combo_multiplier + self.config.combo_step), 2
            )
        else:
            stats.streak = 0
            stats.combo_multiplier = COMBO_MIN
        stats.longest_streak = max(stats.longest_streak, stats.streak)
        stats.perfect_streak = stats.perfect_streak + 1 if correct and not used_hint else 0
        stats.avg_response_time_ms = (
            stats.avg_response_time_ms * old_total + response_time_ms
        ) / (old_total + 1)
        stats.last_answered_at = timestamp or utcnow()

        self._history[module].append(PerformanceSample(correct, response_time_ms))

        self.log.debug(
            f"{module}: {'correct' if correct else 'wrong'} in {response_time_ms}ms "
            f"({stats.correct}/{stats.total}, streak {stats.streak}, "
            f"combo x{stats.combo_multiplier})"
        )

        self._persist(module)
        return stats.copy()

    def reset_module(self, module: str) -> ModuleStats:
        """Zero a module's stats and history, persisting the reset."""
        module = validate_module(module)
        stats = ModuleStats(module=module)
        self._stats[module] = stats
        self._history[module] = deque(maxlen=self.config.history_size)
        self._persist(module)
        self.log.info(f"Reset stats for {module}")
        return stats.copy()

    # =========================================================================
    # Queries
    # =========================================================================

    def get_stats(self, module: str) -> ModuleStats:
        """Copy of the module's stats (zero-initialised if never answered)."""
        return self._ensure(validate_module(module)).copy()

    def recent(self, module: str) -> list[PerformanceSample]:
        """Recent answers for the module, oldest first."""
        module = validate_module(module)
        self._ensure(module)
        return list(self._history[module])

    def modules(self) -> list[str]:
        """Modules loaded or answered in this session, sorted."""
        return sorted(self._stats)

    def load_modules(self, modules: list[str]) -> None:
        """Eagerly load persisted stats for the given modules."""
        for module in modules:
            self._ensure(validate_module(module))

    # =========================================================================
    # Internals
    # =========================================================================

    def _ensure(self, module: str) -> ModuleStats:
        stats = self._stats.get(module)
        if stats is not None:
            return stats

        blob = read_blob(self.storage, stats_key(module), None, self.log)
        stats = None
        if isinstance(blob, dict):
            stats = ModuleStats.from_dict(blob, combo_max=self.config.combo_max)
            stats.module = module
        elif blob is not None:
            self.log.warning(f"Ignoring malformed stats blob for {module}: {type(blob).__name__}")
        if stats is None:
            stats = ModuleStats(module=module)

        raw_recent = blob.get("recent") if isinstance(blob, dict) and stats.total else None
        if not isinstance(raw_recent, list):
            raw_recent = []
        self._stats[module] = stats
        self._history[module] = deque(
            (PerformanceSample.from_dict(s) for s in raw_recent if isinstance(s, dict)),
            maxlen=self.config.history_size,
        )
        return stats

    def _persist(self, module: str) -> None:
        blob = self._stats[module].to_dict()
        blob["recent"] = [s.to_dict() for s in self._history[module]]
        write_through(self.storage, stats_key(module), blob, self.log)
