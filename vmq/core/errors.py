"""
Error taxonomy for the practice engine.

- InvalidArgument: malformed input to a public operation (propagated to caller)
- InvalidState: invariant violation detected at runtime (logged, operation holds)
- StorageErrorKind: failure categories reported by storage backends via
  StorageResult rather than raised
"""

from __future__ import annotations

from enum import Enum


class VMQError(Exception):
    """Base class for all engine errors."""


class InvalidArgument(VMQError, ValueError):
    """A public operation received malformed input."""


class InvalidState(VMQError, RuntimeError):
    """Component-owned state violates an invariant."""


class StorageErrorKind(str, Enum):
    """Why a storage operation failed."""

    READ_FAILED = "read_failed"
    WRITE_FAILED = "write_failed"
    CORRUPT = "corrupt"
    UNSERIALIZABLE = "unserializable"
