"""
Core domain types shared by every component.

- Answer and stats models
- Mastery grading
- Error types
- Collaborator protocols (storage, notifications, XP)
"""

from vmq.core.collaborators import (
    LevelChanged,
    NotificationSink,
    NullNotificationSink,
    RecordingNotificationSink,
    RewardFeedback,
    StorageBackend,
    StorageResult,
    XPAward,
    XPLedger,
)
from vmq.core.errors import InvalidArgument, InvalidState, StorageErrorKind, VMQError
from vmq.core.mastery import Grade, MasteryReport, compute_mastery
from vmq.core.models import AnswerEvent, ModuleStats, PerformanceSample

__all__ = [
    "AnswerEvent",
    "Grade",
    "InvalidArgument",
    "InvalidState",
    "LevelChanged",
    "MasteryReport",
    "ModuleStats",
    "NotificationSink",
    "NullNotificationSink",
    "PerformanceSample",
    "RecordingNotificationSink",
    "RewardFeedback",
    "StorageBackend",
    "StorageErrorKind",
    "StorageResult",
    "VMQError",
    "XPAward",
    "XPLedger",
    "compute_mastery",
]
