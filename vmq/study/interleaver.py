"""
Review Interleaver for practice sessions.

Mixes due spaced-repetition reviews into the stream of fresh questions:
- With probability ``review_probability`` (30% default) a due item is served
- Otherwise a fresh candidate is drawn uniformly at random

Only up to ``due_pool_size`` (6) due items are considered per pick so a
large backlog never crowds out new material. An empty due pool always falls
through to fresh content.
"""
from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from vmq.delivery.scheduler import SpacedItem, SpacedRepetitionScheduler, WeightFn, weighted_sample


@dataclass
class InterleaveConfig:
    """Configuration for interleaving reviews with fresh content."""
    review_probability: float = 0.30
    due_pool_size: int = 6

    @classmethod
    def from_settings(cls, settings: Any) -> InterleaveConfig:
        return cls(
            review_probability=settings.review_probability,
            due_pool_size=settings.due_pool_size,
        )


@dataclass(frozen=True)
class Selection:
    """The next question to show."""
    module: str
    content_id: str
    source: str  # 'review' or 'fresh'
    item: Optional[SpacedItem] = None

    @property
    def is_review(self) -> bool:
        return self.source == "review"


class ReviewInterleaver:
    """
    Chooses between a due review and a fresh question.

    Never blocks: when nothing is due and there are no fresh candidates,
    ``pick`` returns None and the caller generates a question itself.
    """

    def __init__(
        self,
        scheduler: SpacedRepetitionScheduler,
        config: Optional[InterleaveConfig] = None,
        rng: Optional[random.Random] = None,
        weight: Optional[WeightFn] = None,
        log: Any = None,
    ):
        """
        Initialize interleaver.

        Args:
            scheduler: Source of due items
            config: InterleaveConfig or None for defaults
            rng: Random source (shared with the scheduler when None)
            weight: Optional priority function for choosing among due items
        """
        self.scheduler = scheduler
        self.config = config or InterleaveConfig()
        self.rng = rng or scheduler.rng
        self.weight = weight
        self.log = log or logger.bind(component="interleaver")

    def due_pool(self, module: str) -> list[SpacedItem]:
        """Due items considered for the next pick."""
        return self.scheduler.select_due_items(
            module, limit=self.config.due_pool_size, weight=self.weight
        )

    def pick(self, module: str, fresh_candidates: Sequence[str] = ()) -> Optional[Selection]:
        """
        Pick the next question for a module.

        Args:
            module: Module being practiced
            fresh_candidates: Content ids of new questions available

        Returns:
            Selection, or None when there is nothing to serve
        """
        pool = self.due_pool(module)

        if pool and self.rng.random() < self.config.review_probability:
            item = self._choose(pool)
            self.log.debug(f"{module}: serving review {item.item_key} ({len(pool)} due)")
            return Selection(module=module, content_id=item.content_id, source="review", item=item)

        if fresh_candidates:
            content_id = self.rng.choice(list(fresh_candidates))
            return Selection(module=module, content_id=str(content_id), source="fresh")

        if pool:
            # No fresh candidates: fall back to the due pool
            item = self._choose(pool)
            return Selection(module=module, content_id=item.content_id, source="review", item=item)

        return None

    def _choose(self, pool: list[SpacedItem]) -> SpacedItem:
        if self.weight is None:
            return self.rng.choice(pool)
        return weighted_sample(pool, 1, self.weight, self.scheduler.clock(), self.rng)[0]
