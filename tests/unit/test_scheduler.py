"""
Unit tests for the SM-2 spaced repetition scheduler.
"""

import random
from datetime import timedelta

import pytest

from vmq.core.errors import InvalidArgument
from vmq.delivery.scheduler import (
    SM2Config,
    SpacedItem,
    SpacedRepetitionScheduler,
    review_priority,
)
from vmq.delivery.state_store import SRS_ITEMS_KEY, MemoryStateStore


@pytest.fixture
def scheduler(store, rng, clock):
    return SpacedRepetitionScheduler(store, rng=rng, clock=clock)


class TestIntervals:
    def test_first_three_correct_reviews(self, scheduler):
        key = scheduler.item_key("keys", "G-major")

        first = scheduler.schedule_review(key, True)
        assert first.repetitions == 1
        assert first.interval_days == 1

        second = scheduler.schedule_review(key, True)
        assert second.repetitions == 2
        assert second.interval_days == 6

        ease_before_third = second.ease_factor
        third = scheduler.schedule_review(key, True)
        assert third.repetitions == 3
        assert third.interval_days == round(6 * ease_before_third)

    def test_interval_non_decreasing_while_correct(self, scheduler):
        key = scheduler.item_key("intervals", "P5")
        previous = 0
        for _ in range(12):
            item = scheduler.schedule_review(key, True)
            assert item.interval_days >= previous
            previous = item.interval_days

    def test_miss_resets(self, scheduler):
        key = scheduler.item_key("keys", "D-major")
        for _ in range(4):
            scheduler.schedule_review(key, True)

        item = scheduler.schedule_review(key, False)
        assert item.repetitions == 0
        assert item.interval_days == 1
        assert item.lapses == 1

    def test_due_at(self, scheduler, clock):
        item = scheduler.schedule_review(scheduler.item_key("keys", "A"), True)
        assert item.due_at == clock.now + timedelta(days=1)
        assert item.last_reviewed_at == clock.now


class TestEase:
    def test_ease_rises_and_caps(self, scheduler):
        key = scheduler.item_key("keys", "E")
        for _ in range(10):
            item = scheduler.schedule_review(key, True)
        assert item.ease_factor == pytest.approx(2.8)

    def test_ease_floor(self, scheduler):
        key = scheduler.item_key("keys", "F#")
        for _ in range(20):
            item = scheduler.schedule_review(key, False)
            assert item.ease_factor >= 1.3
            assert item.interval_days >= 0
        assert item.ease_factor == pytest.approx(1.3)

    def test_loaded_ease_is_clamped(self, rng, clock):
        store = MemoryStateStore({SRS_ITEMS_KEY: {"keys:C": {"ease_factor": 0.2, "interval_days": -4}}})
        item = SpacedRepetitionScheduler(store, rng=rng, clock=clock).get_item("keys:C")
        assert item.ease_factor == 1.3
        assert item.interval_days == 0


class TestItemKeys:
    def test_composite_key(self):
        assert SpacedRepetitionScheduler.item_key("keys", "G") == "keys:G"

    def test_same_content_in_two_modules_is_independent(self, scheduler):
        scheduler.schedule_review(scheduler.item_key("keys", "G"), True)
        scheduler.schedule_review(scheduler.item_key("notes", "G"), False)

        assert scheduler.get_item("keys:G").lapses == 0
        assert scheduler.get_item("notes:G").lapses == 1

    @pytest.mark.parametrize("module,content", [("", "G"), ("keys", ""), ("ke:ys", "G"), ("keys", None)])
    def test_invalid_parts(self, module, content):
        with pytest.raises(InvalidArgument):
            SpacedRepetitionScheduler.item_key(module, content)

    def test_invalid_key_on_review(self, scheduler):
        with pytest.raises(InvalidArgument):
            scheduler.schedule_review("no-separator", True)


class TestSelection:
    def test_empty_pool(self, scheduler):
        assert scheduler.select_due_items() == []
        assert scheduler.select_due_items("keys", limit=3) == []

    def test_only_due_items(self, scheduler, clock):
        scheduler.schedule_review("keys:A", True)  # due tomorrow
        scheduler.ensure_item("keys:B")  # due now

        assert [i.item_key for i in scheduler.select_due_items("keys")] == ["keys:B"]

        clock.advance(days=2)
        assert {i.item_key for i in scheduler.select_due_items("keys")} == {"keys:A", "keys:B"}

    def test_module_filter(self, scheduler):
        scheduler.ensure_item("keys:A")
        scheduler.ensure_item("rhythm:A")

        assert [i.item_key for i in scheduler.select_due_items("rhythm")] == ["rhythm:A"]
        assert len(scheduler.select_due_items(None)) == 2

    def test_limit(self, scheduler):
        for n in range(10):
            scheduler.ensure_item(f"keys:{n}")
        picked = scheduler.select_due_items("keys", limit=6)
        assert len(picked) == 6
        assert len({i.item_key for i in picked}) == 6

    def test_weighted_prefers_heavy_items(self, store, clock):
        scheduler = SpacedRepetitionScheduler(store, rng=random.Random(5), clock=clock)
        scheduler.ensure_item("keys:heavy")
        scheduler.ensure_item("keys:light")

        def weight(item, now):
            return 1000.0 if item.content_id == "heavy" else 0.0

        picks = [scheduler.select_due_items("keys", limit=1, weight=weight)[0].content_id for _ in range(50)]
        assert picks.count("heavy") >= 48

    def test_due_items_sorted(self, scheduler, clock):
        scheduler.ensure_item("keys:late")
        clock.advance(hours=-1)
        scheduler.ensure_item("keys:early")
        clock.advance(hours=2)

        assert [i.content_id for i in scheduler.due_items("keys")] == ["early", "late"]


class TestPriority:
    def test_never_reviewed(self, clock):
        assert review_priority(SpacedItem("keys:A"), clock.now) == 100

    def test_perfect_item_zero(self, clock):
        item = SpacedItem("keys:A", reviews=5, correct_reviews=5, last_reviewed_at=clock.now)
        assert review_priority(item, clock.now) == 0

    def test_formula(self, clock):
        item = SpacedItem("keys:A", reviews=10, correct_reviews=5, last_reviewed_at=clock.now)
        # (1 - 0.5) * 100 * (0.7 + 0.3) * (0.5 + 0.5)
        assert review_priority(item, clock.now) == pytest.approx(50)

    def test_old_reviews_lower_priority(self, clock):
        item = SpacedItem("keys:A", reviews=10, correct_reviews=5, last_reviewed_at=clock.now - timedelta(days=14))
        assert review_priority(item, clock.now) == pytest.approx(35)


class TestPersistenceAndOverview:
    def test_persisted_after_review(self, scheduler, store, rng, clock):
        scheduler.schedule_review("keys:A", True)

        assert "keys:A" in store.load(SRS_ITEMS_KEY).value
        reloaded = SpacedRepetitionScheduler(store, rng=rng, clock=clock)
        assert reloaded.get_item("keys:A").repetitions == 1

    def test_exposed_item_persisted_before_review(self, scheduler, store, rng, clock):
        scheduler.ensure_item("keys:A")

        assert "keys:A" in store.load(SRS_ITEMS_KEY).value
        reloaded = SpacedRepetitionScheduler(store, rng=rng, clock=clock).get_item("keys:A")
        assert reloaded.reviews == 0
        assert reloaded.is_due(clock.now)

    def test_corrupt_map_starts_empty(self, rng, clock):
        store = MemoryStateStore()
        store.put_raw(SRS_ITEMS_KEY, "][")
        assert SpacedRepetitionScheduler(store, rng=rng, clock=clock).items() == []

    def test_overview(self, scheduler):
        scheduler.schedule_review("keys:A", True)
        scheduler.schedule_review("keys:B", False)
        scheduler.schedule_review("keys:B", True)
        scheduler.ensure_item("keys:C")

        assert scheduler.overview() == {
            "total_items": 3,
            "due_now": 1,
            "total_reviews": 3,
            "accuracy_pct": 67,
        }

    def test_custom_config(self, store, rng, clock):
        scheduler = SpacedRepetitionScheduler(store, SM2Config(initial_easiness=2.0), rng=rng, clock=clock)
        assert scheduler.ensure_item("keys:A").ease_factor == 2.0


class TestSpacedItem:
    def test_days_overdue(self, clock):
        item = SpacedItem("keys:A", due_at=clock.now - timedelta(days=2, hours=12))
        assert item.days_overdue(clock.now) == pytest.approx(2.5)
        assert item.is_due(clock.now)

    def test_not_overdue_when_future(self, clock):
        item = SpacedItem("keys:A", due_at=clock.now + timedelta(days=1))
        assert item.days_overdue(clock.now) == 0
        assert not item.is_due(clock.now)

    def test_module_and_content(self):
        item = SpacedItem("rhythm:dotted:quarter")
        assert item.module == "rhythm"
        assert item.content_id == "dotted:quarter"
