"""
Delivery Module.

Persistence and review scheduling:
- Key-value state stores (in-memory and SQLAlchemy)
- SM-2 style spaced-repetition scheduler
"""

from vmq.delivery.scheduler import SM2Config, SpacedItem, SpacedRepetitionScheduler, review_priority
from vmq.delivery.state_store import MemoryStateStore, SqlStateStore

__all__ = [
    "MemoryStateStore",
    "SM2Config",
    "SpacedItem",
    "SpacedRepetitionScheduler",
    "SqlStateStore",
    "review_priority",
]
