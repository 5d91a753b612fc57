"""
SM-2 Style Spaced Repetition Scheduler.

Implements:
- Simplified SM-2 interval growth (1 day, 6 days, then interval × ease)
- Ease factor nudged up on correct reviews and down on misses, bounded
- Due-item selection, uniform or weighted, for interleaved practice

Item identity is the composite key ``<module>:<content_id>`` so identical
content in two modules is scheduled independently.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from vmq.core.collaborators import StorageBackend
from vmq.core.errors import InvalidArgument
from vmq.core.utils import clamp, format_timestamp, parse_timestamp, round_half_up, utcnow

from .state_store import SRS_ITEMS_KEY, read_blob, write_through

MS_PER_DAY = 86_400_000
KEY_SEPARATOR = ":"

WeightFn = Callable[["SpacedItem", datetime], float]


# =============================================================================
# SM-2 State
# =============================================================================


@dataclass
class SM2Config:
    """Configuration for the SM-2 algorithm."""

    initial_easiness: float = 2.5
    minimum_easiness: float = 1.3
    maximum_easiness: float = 2.8
    easiness_bonus: float = 0.1  # Applied after a correct review
    easiness_penalty: float = 0.2  # Applied after a miss
    first_interval: float = 1  # Days for first review
    second_interval: float = 6  # Days for second review

    @classmethod
    def from_settings(cls, settings: Any) -> SM2Config:
        return cls(
            initial_easiness=settings.initial_ease,
            minimum_easiness=settings.minimum_ease,
            maximum_easiness=settings.maximum_ease,
        )


@dataclass
class SpacedItem:
    """Scheduling state for one reviewable unit."""

    item_key: str
    ease_factor: float = 2.5
    interval_days: float = 0.0
    due_at: datetime | None = None
    repetitions: int = 0  # Consecutive correct reviews
    reviews: int = 0
    correct_reviews: int = 0
    lapses: int = 0
    last_reviewed_at: datetime | None = None

    @property
    def module(self) -> str:
        return self.item_key.split(KEY_SEPARATOR, 1)[0]

    @property
    def content_id(self) -> str:
        return self.item_key.split(KEY_SEPARATOR, 1)[-1]

    def is_due(self, now: datetime) -> bool:
        """Never-scheduled items are due."""
        return self.due_at is None or self.due_at <= now

    def days_overdue(self, now: datetime) -> float:
        if self.due_at is None:
            return 0.0
        return max(0.0, (now - self.due_at).total_seconds() / 86400.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_key": self.item_key,
            "ease_factor": self.ease_factor,
            "interval_days": self.interval_days,
            "due_at": format_timestamp(self.due_at),
            "repetitions": self.repetitions,
            "reviews": self.reviews,
            "correct_reviews": self.correct_reviews,
            "lapses": self.lapses,
            "last_reviewed_at": format_timestamp(self.last_reviewed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], config: SM2Config | None = None) -> SpacedItem:
        config = config or SM2Config()
        return cls(
            item_key=str(data["item_key"]),
            ease_factor=clamp(
                float(data.get("ease_factor", config.initial_easiness)),
                config.minimum_easiness,
                config.maximum_easiness,
            ),
            interval_days=max(0.0, float(data.get("interval_days", 0.0))),
            due_at=parse_timestamp(data.get("due_at")),
            repetitions=max(0, int(data.get("repetitions", 0))),
            reviews=max(0, int(data.get("reviews", 0))),
            correct_reviews=max(0, int(data.get("correct_reviews", 0))),
            lapses=max(0, int(data.get("lapses", 0))),
            last_reviewed_at=parse_timestamp(data.get("last_reviewed_at")),
        )


def review_priority(item: SpacedItem, now: datetime) -> float:
    """
    Practice priority of an item; higher means it needs more work.

    Never-reviewed items get 100. Otherwise priority grows with the miss
    rate, stays higher for recently reviewed items (decaying over 7 days) and
    for items with more review history (capped at 10 reviews).
    """
    if item.reviews == 0:
        return 100.0

    accuracy = item.correct_reviews / item.reviews
    recency = 1.0
    if item.last_reviewed_at is not None:
        age_days = (now - item.last_reviewed_at).total_seconds() / 86400.0
        recency = max(0.0, 1 - age_days / 7)
    experience = min(item.reviews / 10, 1.0)

    return (1 - accuracy) * 100 * (0.7 + 0.3 * recency) * (0.5 + 0.5 * experience)


def weighted_sample(
    items: list[SpacedItem],
    k: int,
    weight: WeightFn,
    now: datetime,
    rng: random.Random,
) -> list[SpacedItem]:
    """Weighted sampling without replacement."""
    pool = [(item, max(weight(item, now), 1e-9)) for item in items]
    chosen: list[SpacedItem] = []
    while pool and len(chosen) < k:
        total = sum(w for _, w in pool)
        point = rng.random() * total
        for index, (item, w) in enumerate(pool):
            point -= w
            if point <= 0:
                break
        chosen.append(pool.pop(index)[0])
    return chosen


# =============================================================================
# Scheduler
# =============================================================================


class SpacedRepetitionScheduler:
    """
    Owns the SpacedItem map.

    Every item carries:
    - Ease factor: how quickly intervals grow (2.5 default, 1.3 floor)
    - Interval: days until the next review
    - Repetitions: consecutive correct reviews
    """

    def __init__(
        self,
        storage: StorageBackend,
        config: SM2Config | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
        log: Any = None,
    ):
        """
        Initialize scheduler.

        Args:
            storage: Blob store holding the item map under ``srs:items``
            config: Custom configuration (uses defaults if None)
            rng: Random source for due-item sampling
            clock: Returns the current time (UTC)
        """
        self.storage = storage
        self.config = config or SM2Config()
        self.rng = rng or random.Random()
        self.clock = clock
        self.log = log or logger.bind(component="scheduler")

        self._items: dict[str, SpacedItem] = self._load()

    # =========================================================================
    # Identity
    # =========================================================================

    @staticmethod
    def item_key(module: str, content_id: str) -> str:
        """Composite item key ``module:content_id``."""
        if not isinstance(module, str) or not module.strip():
            raise InvalidArgument(f"module must be a non-empty string, got {module!r}")
        if KEY_SEPARATOR in module:
            raise InvalidArgument(f"module may not contain {KEY_SEPARATOR!r}: {module!r}")
        if content_id is None or not str(content_id).strip():
            raise InvalidArgument(f"content_id must be non-empty, got {content_id!r}")
        return f"{module}{KEY_SEPARATOR}{content_id}"

    # =========================================================================
    # Reviews
    # =========================================================================

    def ensure_item(self, item_key: str, now: datetime | None = None) -> SpacedItem:
        """Get the item, creating and persisting it (due immediately) on first exposure."""
        item, created = self._get_or_create(item_key, now)
        if created:
            self._persist()
        return item

    def schedule_review(
        self,
        item: SpacedItem | str,
        correct: bool,
        now: datetime | None = None,
    ) -> SpacedItem:
        """
        Apply a review outcome and reschedule.

        Args:
            item: SpacedItem or its key
            correct: Whether the review was answered correctly
            now: Review time (defaults to clock)

        Returns:
            Copy of the updated SpacedItem
        """
        now = now or self.clock()
        key = item.item_key if isinstance(item, SpacedItem) else item
        state, _ = self._get_or_create(key, now)

        if correct:
            state.repetitions += 1
            if state.repetitions <= 1:
                interval = self.config.first_interval
            elif state.repetitions == 2:
                interval = self.config.second_interval
            else:
                interval = round_half_up(state.interval_days * state.ease_factor)
            state.ease_factor = min(
                self.config.maximum_easiness, state.ease_factor + self.config.easiness_bonus
            )
            state.correct_reviews += 1
        else:
            state.repetitions = 0
            interval = self.config.first_interval
            state.ease_factor = max(
                self.config.minimum_easiness, state.ease_factor - self.config.easiness_penalty
            )
            state.lapses += 1

        state.ease_factor = round(
            clamp(state.ease_factor, self.config.minimum_easiness, self.config.maximum_easiness), 4
        )
        state.interval_days = float(max(0, interval))
        state.due_at = now + timedelta(milliseconds=state.interval_days * MS_PER_DAY)
        state.reviews += 1
        state.last_reviewed_at = now

        self.log.debug(
            f"{key}: {'pass' if correct else 'lapse'} -> {state.interval_days:g}d "
            f"(ease {state.ease_factor}, reps {state.repetitions})"
        )

        self._persist()
        return replace(state)

    # =========================================================================
    # Selection
    # =========================================================================

    def due_items(self, module: str | None = None, now: datetime | None = None) -> list[SpacedItem]:
        """Due items, soonest due first then shortest interval."""
        now = now or self.clock()
        due = [
            item for item in self._items.values()
            if item.is_due(now) and (module is None or item.module == module)
        ]
        due.sort(key=lambda i: (i.due_at or now, i.interval_days, i.item_key))
        return [replace(i) for i in due]

    def select_due_items(
        self,
        module: str | None = None,
        limit: int = 6,
        weight: WeightFn | None = None,
        now: datetime | None = None,
    ) -> list[SpacedItem]:
        """
        Randomly pick up to ``limit`` due items.

        Args:
            module: Restrict to one module (None = all modules)
            limit: Maximum items to return
            weight: Optional priority function; uniform when None
            now: Reference time

        Returns:
            Selected items (empty when nothing is due)
        """
        if limit <= 0:
            return []
        now = now or self.clock()
        due = self.due_items(module, now)
        if not due:
            return []

        k = min(limit, len(due))
        if weight is None:
            return self.rng.sample(due, k)
        return weighted_sample(due, k, weight, now, self.rng)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_item(self, item_key: str) -> SpacedItem | None:
        item = self._items.get(item_key)
        return replace(item) if item is not None else None

    def items(self, module: str | None = None) -> list[SpacedItem]:
        return [
            replace(i) for _, i in sorted(self._items.items())
            if module is None or i.module == module
        ]

    def overview(self, now: datetime | None = None) -> dict[str, int]:
        """Totals across all items."""
        now = now or self.clock()
        items = list(self._items.values())
        total_reviews = sum(i.reviews for i in items)
        total_correct = sum(i.correct_reviews for i in items)
        return {
            "total_items": len(items),
            "due_now": sum(1 for i in items if i.is_due(now)),
            "total_reviews": total_reviews,
            "accuracy_pct": round_half_up(100 * total_correct / total_reviews) if total_reviews else 0,
        }

    # =========================================================================
    # Persistence
    # =========================================================================

    def _validate_key(self, item_key: str) -> None:
        if not isinstance(item_key, str) or KEY_SEPARATOR not in item_key:
            raise InvalidArgument(f"item key must look like 'module:content', got {item_key!r}")
        module, content = item_key.split(KEY_SEPARATOR, 1)
        if not module.strip() or not content.strip():
            raise InvalidArgument(f"item key must look like 'module:content', got {item_key!r}")

    def _load(self) -> dict[str, SpacedItem]:
        blob = read_blob(self.storage, SRS_ITEMS_KEY, {}, self.log)
        if not isinstance(blob, dict):
            self.log.warning(f"Ignoring malformed item map: {type(blob).__name__}")
            return {}

        items: dict[str, SpacedItem] = {}
        for key, data in blob.items():
            try:
                items[key] = SpacedItem.from_dict({**data, "item_key": key}, self.config)
            except (TypeError, ValueError, KeyError) as e:
                self.log.warning(f"Skipping unreadable item {key!r}: {e}")
        return items

    def _get_or_create(self, item_key: str, now: datetime | None) -> tuple[SpacedItem, bool]:
        self._validate_key(item_key)
        item = self._items.get(item_key)
        if item is not None:
            return item, False
        item = SpacedItem(
            item_key=item_key,
            ease_factor=self.config.initial_easiness,
            due_at=now or self.clock(),
        )
        self._items[item_key] = item
        return item, True

    def _persist(self) -> None:
        blob = {key: item.to_dict() for key, item in self._items.items()}
        write_through(self.storage, SRS_ITEMS_KEY, blob, self.log)
