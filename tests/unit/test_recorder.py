"""
Unit tests for the AnswerRecorder.

Uses the in-memory store; no database required.
"""

import random

import pytest

from vmq.core.collaborators import StorageResult
from vmq.core.errors import InvalidArgument, StorageErrorKind
from vmq.core.models import COMBO_MAX, COMBO_MIN, ModuleStats, clamp_response_time
from vmq.delivery.state_store import MemoryStateStore, stats_key
from vmq.study.recorder import AnswerRecorder, RecorderConfig


class FailingStore(MemoryStateStore):
    def save(self, key, blob):
        return StorageResult.failure(StorageErrorKind.WRITE_FAILED, "disk full")


class TestRecordAnswer:
    def test_first_correct_answer(self, store):
        stats = AnswerRecorder(store).record_answer("keys", True, 1800, False)

        assert stats.correct == 1
        assert stats.total == 1
        assert stats.streak == 1
        assert stats.avg_response_time_ms == 1800
        assert stats.combo_multiplier == pytest.approx(1.1)

    def test_wrong_answer_resets_streak_and_combo(self, store):
        recorder = AnswerRecorder(store)
        for _ in range(3):
            recorder.record_answer("keys", True, 1000)
        stats = recorder.record_answer("keys", False, 3000)

        assert stats.streak == 0
        assert stats.longest_streak == 3
        assert stats.combo_multiplier == COMBO_MIN
        assert stats.correct == 3
        assert stats.total == 4

    def test_incremental_mean(self, store):
        recorder = AnswerRecorder(store)
        recorder.record_answer("rhythm", True, 1000)
        recorder.record_answer("rhythm", True, 2000)
        stats = recorder.record_answer("rhythm", False, 4500)

        assert stats.avg_response_time_ms == pytest.approx(2500)

    def test_perfect_streak_broken_by_hint(self, store):
        recorder = AnswerRecorder(store)
        recorder.record_answer("keys", True, 1000)
        recorder.record_answer("keys", True, 1000)
        stats = recorder.record_answer("keys", True, 1000, used_hint=True)

        assert stats.perfect_streak == 0
        assert stats.streak == 3

    def test_combo_capped(self, store):
        recorder = AnswerRecorder(store)
        for _ in range(40):
            stats = recorder.record_answer("keys", True, 900)
        assert stats.combo_multiplier == COMBO_MAX

    def test_returns_copy(self, store):
        recorder = AnswerRecorder(store)
        stats = recorder.record_answer("keys", True, 900)
        stats.correct = 99
        assert recorder.get_stats("keys").correct == 1


class TestInvariants:
    def test_correct_never_exceeds_total_and_combo_in_bounds(self, store):
        recorder = AnswerRecorder(store)
        rand = random.Random(7)
        for _ in range(300):
            stats = recorder.record_answer("intervals", rand.random() < 0.7, rand.randint(0, 9000))
            assert stats.correct <= stats.total
            assert COMBO_MIN <= stats.combo_multiplier <= COMBO_MAX
            assert stats.avg_response_time_ms >= 0


class TestValidation:
    @pytest.mark.parametrize("module", ["", "   ", None, 42])
    def test_invalid_module(self, store, module):
        with pytest.raises(InvalidArgument):
            AnswerRecorder(store).record_answer(module, True, 1000)

    @pytest.mark.parametrize("rt", [-1, float("nan"), "fast", True])
    def test_invalid_response_time(self, store, rt):
        with pytest.raises(InvalidArgument):
            AnswerRecorder(store).record_answer("keys", True, rt)

    def test_invalid_argument_is_value_error(self, store):
        with pytest.raises(ValueError):
            AnswerRecorder(store).record_answer("", True, 1000)

    @pytest.mark.parametrize("raw,expected", [(-5, 0), ("abc", 0), (None, 0), (float("inf"), 0), (1234.7, 1234)])
    def test_clamp_response_time(self, raw, expected):
        assert clamp_response_time(raw) == expected


class TestHistory:
    def test_history_bounded(self, store):
        recorder = AnswerRecorder(store, RecorderConfig(history_size=20))
        for i in range(25):
            recorder.record_answer("keys", i % 2 == 0, i)

        recent = recorder.recent("keys")
        assert len(recent) == 20
        assert recent[0].response_time_ms == 5
        assert recent[-1].response_time_ms == 24


class TestPersistence:
    def test_write_through(self, store):
        AnswerRecorder(store).record_answer("keys", True, 1800)

        blob = store.load(stats_key("keys")).value
        assert blob["correct"] == 1
        assert blob["total"] == 1

    def test_reload_from_storage(self, store):
        AnswerRecorder(store).record_answer("keys", True, 1800)
        stats = AnswerRecorder(store).record_answer("keys", False, 2200)

        assert stats.total == 2
        assert stats.avg_response_time_ms == pytest.approx(2000)

    def test_recent_history_survives_reload(self, store):
        recorder = AnswerRecorder(store, RecorderConfig(history_size=3))
        for rt in (100, 200, 300, 400):
            recorder.record_answer("keys", rt != 300, rt)

        recent = AnswerRecorder(store, RecorderConfig(history_size=3)).recent("keys")
        assert [s.response_time_ms for s in recent] == [200, 300, 400]
        assert [s.correct for s in recent] == [True, False, True]

    def test_malformed_history_ignored(self):
        store = MemoryStateStore({
            stats_key("keys"): {"module": "keys", "correct": 1, "total": 1, "recent": "x"},
        })
        recorder = AnswerRecorder(store)

        assert recorder.recent("keys") == []
        assert recorder.get_stats("keys").total == 1

    def test_storage_failure_does_not_affect_result(self):
        stats = AnswerRecorder(FailingStore()).record_answer("keys", True, 1800)
        assert stats.total == 1

    def test_corrupt_blob_treated_as_new_module(self):
        store = MemoryStateStore()
        store.put_raw(stats_key("keys"), "{not json")

        stats = AnswerRecorder(store).record_answer("keys", True, 1000)
        assert stats.total == 1

    def test_bad_persisted_counts_repaired(self):
        store = MemoryStateStore({
            stats_key("keys"): {"module": "keys", "correct": 9, "total": 4, "combo_multiplier": 7.5},
        })
        stats = AnswerRecorder(store).get_stats("keys")

        assert stats.correct == 4
        assert stats.combo_multiplier == COMBO_MAX

    def test_reset_module(self, store):
        recorder = AnswerRecorder(store)
        recorder.record_answer("keys", True, 1000)
        stats = recorder.reset_module("keys")

        assert stats == ModuleStats(module="keys")
        assert store.load(stats_key("keys")).value["total"] == 0
        assert recorder.recent("keys") == []
