"""
Unit tests for confusion tracking.
"""

from vmq.delivery.state_store import MemoryStateStore, confusion_key
from vmq.study.confusion import ConfusionPair, ConfusionTracker


class TestConfusionTracker:
    def test_counts_pairs(self, store):
        tracker = ConfusionTracker(store)
        tracker.record("keys", "F#", "F")
        tracker.record("keys", "F#", "F")
        tracker.record("keys", "Bb", "B")

        assert tracker.matrix("keys") == {"F#": {"F": 2}, "Bb": {"B": 1}}

    def test_ignores_missing_or_matching_values(self, store):
        tracker = ConfusionTracker(store)
        assert tracker.record("keys", None, "F") is False
        assert tracker.record("keys", "F", None) is False
        assert tracker.record("keys", "F", "F") is False
        assert tracker.matrix("keys") == {}

    def test_top_pairs_order(self, store):
        tracker = ConfusionTracker(store)
        for expected, chosen in [("m3", "M3"), ("P4", "P5"), ("m3", "M3"), ("A4", "d5"), ("P4", "P5")]:
            tracker.record("intervals", expected, chosen)

        assert tracker.top_pairs("intervals", limit=2) == [
            ConfusionPair("P4", "P5", 2),
            ConfusionPair("m3", "M3", 2),
        ]

    def test_modules_kept_apart(self, store):
        tracker = ConfusionTracker(store)
        tracker.record("keys", "G", "D")
        assert tracker.matrix("rhythm") == {}

    def test_persisted(self, store):
        ConfusionTracker(store).record("keys", "Eb", "E")

        assert store.load(confusion_key("keys")).value == {"Eb": {"E": 1}}
        assert ConfusionTracker(store).matrix("keys") == {"Eb": {"E": 1}}

    def test_malformed_blob_dropped(self):
        store = MemoryStateStore({confusion_key("keys"): {"Eb": {"E": "lots", "D": 2}, "C": 5}})
        assert ConfusionTracker(store).matrix("keys") == {"Eb": {"D": 2}}
