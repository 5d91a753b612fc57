"""
Collaborator interfaces for the practice engine.

The engine never talks to storage, the UI or the XP system directly. It
depends on these protocols, injected at construction time:

- StorageBackend: load/save opaque JSON blobs by key (best-effort)
- NotificationSink: receives level-change and reward feedback as plain data
- XPLedger: owns the running XP total

Default implementations for tests and headless use live next to the
protocols (notification sinks) or in their own modules
(vmq.delivery.state_store, vmq.gamification.levels).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from .errors import StorageErrorKind

# =============================================================================
# Storage
# =============================================================================


@dataclass
class StorageResult:
    """Outcome of a storage operation. Backends return these instead of raising."""

    ok: bool
    value: Any = None
    error_kind: StorageErrorKind | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: Any = None) -> StorageResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: StorageErrorKind, error: str, value: Any = None) -> StorageResult:
        return cls(ok=False, value=value, error_kind=kind, error=error)


@runtime_checkable
class StorageBackend(Protocol):
    """Key-value blob storage."""

    def load(self, key: str, default: Any = None) -> StorageResult:
        """Load a blob; a missing key is a success carrying ``default``."""
        ...

    def save(self, key: str, blob: Any) -> StorageResult:
        """Persist a JSON-serializable blob."""
        ...


# =============================================================================
# Notifications
# =============================================================================


@dataclass(frozen=True)
class LevelChanged:
    """Difficulty tier moved for a module."""

    module: str
    old_level: str
    new_level: str
    direction: str  # "up" | "down"
    toast_message: str


@dataclass(frozen=True)
class RewardFeedback:
    """XP and feedback text for one answer."""

    module: str
    xp_awarded: int
    feedback_message: str
    correct: bool


Notification = LevelChanged | RewardFeedback


@runtime_checkable
class NotificationSink(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class NullNotificationSink:
    """Discards every notification."""

    def notify(self, notification: Notification) -> None:
        return None


@dataclass
class RecordingNotificationSink:
    """Keeps notifications in memory, in arrival order."""

    notifications: list[Notification] = field(default_factory=list)

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def of_type(self, kind: type) -> list[Notification]:
        return [n for n in self.notifications if isinstance(n, kind)]

    def clear(self) -> None:
        self.notifications.clear()


# =============================================================================
# XP
# =============================================================================


@dataclass(frozen=True)
class XPAward:
    """Result of adding XP to a ledger."""

    old_xp: int
    new_xp: int
    old_level: int
    new_level: int
    bonus_xp: int = 0

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


@runtime_checkable
class XPLedger(Protocol):
    def add_xp(self, amount: int, reason: str, metadata: dict[str, Any] | None = None) -> XPAward:
        ...

    def total(self) -> int:
        ...
