"""
Confusion tracking.

Counts which wrong answer a learner gives for which expected answer
(e.g. "F#" mistaken for "F") so practice can target the mixed-up pairs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from vmq.core.collaborators import StorageBackend
from vmq.core.models import validate_module
from vmq.delivery.state_store import confusion_key, read_blob, write_through


@dataclass(frozen=True)
class ConfusionPair:
    expected: str
    chosen: str
    count: int


class ConfusionTracker:
    """Per-module ``expected -> chosen -> count`` matrices."""

    def __init__(self, storage: StorageBackend, log: Any = None):
        self.storage = storage
        self.log = log or logger.bind(component="confusion")
        self._matrices: dict[str, dict[str, dict[str, int]]] = {}

    def record(self, module: str, expected: Any, chosen: Any) -> bool:
        """
        Count a mistake.

        Returns:
            False when nothing was recorded (missing values or a correct answer)
        """
        module = validate_module(module)
        if expected is None or chosen is None:
            return False
        expected, chosen = str(expected), str(chosen)
        if not expected or expected == chosen:
            return False

        row = self._ensure(module).setdefault(expected, {})
        row[chosen] = row.get(chosen, 0) + 1
        write_through(self.storage, confusion_key(module), self._matrices[module], self.log)
        return True

    def matrix(self, module: str) -> dict[str, dict[str, int]]:
        module = validate_module(module)
        return {expected: dict(row) for expected, row in self._ensure(module).items()}

    def top_pairs(self, module: str, limit: int = 5) -> list[ConfusionPair]:
        """Most frequent confusions, highest count first."""
        pairs = [
            ConfusionPair(expected, chosen, count)
            for expected, row in self._ensure(validate_module(module)).items()
            for chosen, count in row.items()
        ]
        pairs.sort(key=lambda p: (-p.count, p.expected, p.chosen))
        return pairs[:max(0, limit)]

    def _ensure(self, module: str) -> dict[str, dict[str, int]]:
        matrix = self._matrices.get(module)
        if matrix is not None:
            return matrix

        blob = read_blob(self.storage, confusion_key(module), {}, self.log)
        matrix = {}
        if isinstance(blob, dict):
            for expected, row in blob.items():
                if not isinstance(row, dict):
                    continue
                counts = {
                    str(chosen): int(count) for chosen, count in row.items()
                    if isinstance(count, int) and not isinstance(count, bool) and count > 0
                }
                if counts:
                    matrix[str(expected)] = counts
        else:
            self.log.warning(f"Ignoring malformed confusion matrix for {module}")

        self._matrices[module] = matrix
        return matrix
