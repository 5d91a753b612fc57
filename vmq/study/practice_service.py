"""
Practice Service for VMQ drills.

Provides high-level operations for the UI and CLI:
- Submit an answer (stats, difficulty, review schedule, confusion, XP)
- Plan the next question (difficulty level + due reviews)
- Module report and dashboard summaries

One PracticeEngine is built per learner session and passed to whoever needs
it; there is no module-level state.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger

from vmq.core.collaborators import (
    NotificationSink,
    NullNotificationSink,
    RewardFeedback,
    StorageBackend,
    XPAward,
    XPLedger,
)
from vmq.core.mastery import MasteryReport, compute_mastery
from vmq.core.models import AnswerEvent, ModuleStats, validate_module, validate_response_time
from vmq.core.utils import utcnow
from vmq.delivery.scheduler import SM2Config, SpacedItem, SpacedRepetitionScheduler
from vmq.delivery.state_store import SqlStateStore
from vmq.gamification.levels import LevelLedger, level_for, next_level_progress
from vmq.study.confusion import ConfusionPair, ConfusionTracker
from vmq.study.difficulty import DifficultyAdapter, DifficultyChange, DifficultyConfig, Recommendation
from vmq.study.interleaver import InterleaveConfig, ReviewInterleaver, Selection
from vmq.study.recorder import AnswerRecorder, RecorderConfig
from vmq.study.rewards import RewardCalculator, RewardConfig, RewardResult


@dataclass
class AnswerOutcome:
    """Everything that happened because of one answer."""

    stats: ModuleStats
    reward: RewardResult
    difficulty: DifficultyChange
    mastery: MasteryReport
    review: SpacedItem | None = None
    xp: XPAward | None = None
    confusion_recorded: bool = False

    @property
    def xp_awarded(self) -> int:
        return self.reward.xp_awarded

    @property
    def level_changed(self) -> bool:
        return self.difficulty.changed


@dataclass
class QuestionPlan:
    """What the question generator needs for the next question."""

    module: str
    difficulty_level: str
    due_item_ids: list[str] = field(default_factory=list)
    selection: Selection | None = None


@dataclass
class ModuleReport:
    """Summary of a module's progress."""

    module: str
    mastery: MasteryReport
    difficulty_level: str
    recent_accuracy: float
    due_reviews: int
    avg_response_time_ms: float
    combo_multiplier: float
    top_confusions: list[ConfusionPair] = field(default_factory=list)


@dataclass
class Dashboard:
    """Cross-module overview."""

    modules: list[ModuleReport]
    xp_total: int
    level: int
    level_title: str
    level_progress_pct: int
    reviews: dict[str, int]
    recommendations: list[Recommendation]


class PracticeEngine:
    """
    High-level service for practice sessions.

    Coordinates the recorder, difficulty adapter, spaced-repetition
    scheduler, interleaver, confusion tracker and reward calculator. Each
    component owns its own state; the engine only sequences calls.
    """

    def __init__(
        self,
        storage: StorageBackend,
        notifier: NotificationSink | None = None,
        xp_ledger: XPLedger | None = None,
        recorder_config: RecorderConfig | None = None,
        difficulty_config: DifficultyConfig | None = None,
        sm2_config: SM2Config | None = None,
        interleave_config: InterleaveConfig | None = None,
        reward_config: RewardConfig | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
        log: Any = None,
    ):
        """
        Initialize practice engine.

        Args:
            storage: Blob store shared by all components
            notifier: Receives LevelChanged and RewardFeedback (discarded if None)
            xp_ledger: XP collaborator (LevelLedger on ``storage`` if None)
            rng: Random source for review selection
            clock: Returns the current time (UTC)
        """
        self.storage = storage
        self.notifier = notifier or NullNotificationSink()
        self.clock = clock
        self.log = log or logger.bind(component="practice")

        self.recorder = AnswerRecorder(storage, recorder_config)
        self.difficulty = DifficultyAdapter(storage, self.notifier, difficulty_config)
        self.scheduler = SpacedRepetitionScheduler(
            storage, sm2_config, rng=rng or random.Random(), clock=clock
        )
        self.interleaver = ReviewInterleaver(self.scheduler, interleave_config)
        self.confusion = ConfusionTracker(storage)
        self.rewards = RewardCalculator(reward_config)
        self.xp_ledger = xp_ledger if xp_ledger is not None else LevelLedger(storage)

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        storage: StorageBackend | None = None,
        notifier: NotificationSink | None = None,
        xp_ledger: XPLedger | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> PracticeEngine:
        """Build an engine whose components read their tuning from Settings."""
        if storage is None:
            storage = SqlStateStore(settings.resolved_database_url())
        return cls(
            storage,
            notifier=notifier,
            xp_ledger=xp_ledger,
            recorder_config=RecorderConfig.from_settings(settings),
            difficulty_config=DifficultyConfig.from_settings(settings),
            sm2_config=SM2Config.from_settings(settings),
            interleave_config=InterleaveConfig.from_settings(settings),
            reward_config=RewardConfig.from_settings(settings),
            rng=rng,
            clock=clock,
        )

    # =========================================================================
    # Answers
    # =========================================================================

    def submit_answer(
        self,
        module: str,
        correct: bool,
        response_time_ms: int,
        used_hint: bool = False,
        item_id: str | None = None,
        expected: Any = None,
        chosen: Any = None,
        timestamp: datetime | None = None,
    ) -> AnswerOutcome:
        """
        Process one answer end to end.

        The reward uses streak and combo from before this answer.

        Args:
            module: Skill module
            correct: Answer outcome
            response_time_ms: Time to answer (>= 0)
            used_hint: Whether a hint was revealed
            item_id: Content id to schedule for spaced review
            expected: Correct answer (for feedback and confusion tracking)
            chosen: Learner's answer (for confusion tracking)
            timestamp: Answer time (defaults to clock)

        Raises:
            InvalidArgument: empty module, invalid response time, or an item
                id that cannot form a review key. Nothing is recorded.
        """
        module = validate_module(module)
        response_time_ms = validate_response_time(response_time_ms)
        key = None if item_id is None else self.scheduler.item_key(module, str(item_id))
        now = timestamp or self.clock()

        before = self.recorder.get_stats(module)
        stats = self.recorder.record_answer(module, correct, response_time_ms, used_hint, now)
        change = self.difficulty.observe(
            module, correct, response_time_ms, stats.total, stats.avg_response_time_ms
        )

        reward = self.rewards.reward(
            correct,
            response_time_ms,
            streak=before.streak,
            combo_multiplier=before.combo_multiplier,
            used_hint=used_hint,
            perfect_streak=before.perfect_streak,
            consecutive_wrong=self.difficulty.state(module).consecutive_wrong,
            correct_answer=None if expected is None else str(expected),
        )

        self.log.debug(f"{module}: {reward.feedback_message} {reward.breakdown}")

        review = None
        if key is not None:
            review = self.scheduler.schedule_review(key, correct, now)

        confused = False
        if not correct:
            confused = self.confusion.record(module, expected, chosen)

        xp = None
        if reward.xp_awarded > 0:
            xp = self.xp_ledger.add_xp(
                reward.xp_awarded, f"{module}_correct", {"module": module, "streak": before.streak}
            )

        self.notifier.notify(RewardFeedback(
            module=module,
            xp_awarded=reward.xp_awarded,
            feedback_message=reward.feedback_message,
            correct=bool(correct),
        ))

        return AnswerOutcome(
            stats=stats,
            reward=reward,
            difficulty=change,
            mastery=compute_mastery(stats, self.recorder.recent(module)),
            review=review,
            xp=xp,
            confusion_recorded=confused,
        )

    def submit_event(self, event: AnswerEvent, expected: Any = None, chosen: Any = None) -> AnswerOutcome:
        """Process a pre-built AnswerEvent."""
        return self.submit_answer(
            event.module,
            event.correct,
            event.response_time_ms,
            used_hint=event.used_hint,
            item_id=event.item_id,
            expected=expected,
            chosen=chosen,
            timestamp=event.timestamp,
        )

    # =========================================================================
    # Planning
    # =========================================================================

    def plan_next_question(self, module: str, fresh_candidates: Sequence[str] = ()) -> QuestionPlan:
        """Difficulty level, due reviews and a concrete pick for the next question."""
        module = validate_module(module)
        due = self.scheduler.due_items(module)
        return QuestionPlan(
            module=module,
            difficulty_level=self.difficulty.current_level(module),
            due_item_ids=[item.content_id for item in due[:self.interleaver.config.due_pool_size]],
            selection=self.interleaver.pick(module, fresh_candidates),
        )

    # =========================================================================
    # Reports
    # =========================================================================

    def module_report(self, module: str) -> ModuleReport:
        module = validate_module(module)
        stats = self.recorder.get_stats(module)
        return ModuleReport(
            module=module,
            mastery=compute_mastery(stats, self.recorder.recent(module)),
            difficulty_level=self.difficulty.current_level(module),
            recent_accuracy=self.difficulty.recent_accuracy(module),
            due_reviews=len(self.scheduler.due_items(module)),
            avg_response_time_ms=stats.avg_response_time_ms,
            combo_multiplier=stats.combo_multiplier,
            top_confusions=self.confusion.top_pairs(module, limit=3),
        )

    def dashboard(self, modules: Sequence[str] | None = None) -> Dashboard:
        """
        Overview across modules.

        Args:
            modules: Modules to include (defaults to every module seen this
                session plus every module with scheduled items)
        """
        if modules is None:
            names = set(self.recorder.modules())
            names.update(item.module for item in self.scheduler.items())
            modules = sorted(names)
        else:
            self.recorder.load_modules(list(modules))

        reports = [self.module_report(m) for m in modules]
        stats = {m: self.recorder.get_stats(m) for m in modules}

        xp_total = self.xp_ledger.total()
        level = level_for(xp_total)

        return Dashboard(
            modules=reports,
            xp_total=xp_total,
            level=level.level,
            level_title=level.title,
            level_progress_pct=next_level_progress(xp_total).percentage,
            reviews=self.scheduler.overview(),
            recommendations=self.difficulty.recommendations(stats),
        )
