"""
State Stores for the practice engine.

Provides key-value persistence of opaque JSON blobs for:
- ModuleStats per module          (stats:<module>)
- DifficultyState per module      (difficulty:<module>)
- Spaced-repetition item map      (srs:items)
- Confusion matrices per module   (confusion:<module>)
- XP total                        (xp:total)

Backends never raise for I/O problems. They return a StorageResult and the
caller logs it; in-memory state stays authoritative.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from vmq.core.collaborators import StorageBackend, StorageResult
from vmq.core.errors import StorageErrorKind

# =============================================================================
# Keys
# =============================================================================

SRS_ITEMS_KEY = "srs:items"
XP_TOTAL_KEY = "xp:total"


def stats_key(module: str) -> str:
    return f"stats:{module}"


def difficulty_key(module: str) -> str:
    return f"difficulty:{module}"


def confusion_key(module: str) -> str:
    return f"confusion:{module}"


# =============================================================================
# Helpers
# =============================================================================


def write_through(storage: StorageBackend, key: str, blob: Any, log: Any = logger) -> bool:
    """
    Persist a blob and log (never raise) on failure.

    Returns:
        True when the backend reported success
    """
    result = storage.save(key, blob)
    if not result.ok:
        log.warning(f"Persist of {key!r} failed ({result.error_kind}): {result.error}")
    return result.ok


def read_blob(storage: StorageBackend, key: str, default: Any = None, log: Any = logger) -> Any:
    """Load a blob, logging failures and falling back to ``default``."""
    result = storage.load(key, default)
    if not result.ok:
        log.warning(f"Load of {key!r} failed ({result.error_kind}): {result.error}")
        return default
    return result.value


def _encode(blob: Any) -> str:
    return json.dumps(blob, sort_keys=True)


# =============================================================================
# In-memory store
# =============================================================================


class MemoryStateStore:
    """
    Dict-backed store.

    Blobs are stored in encoded form so callers never share mutable
    structures with the store, matching what a real backend does.
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, str] = {}
        for key, blob in (initial or {}).items():
            self._data[key] = _encode(blob)

    def load(self, key: str, default: Any = None) -> StorageResult:
        raw = self._data.get(key)
        if raw is None:
            return StorageResult.success(default)
        try:
            return StorageResult.success(json.loads(raw))
        except json.JSONDecodeError as e:
            return StorageResult.failure(StorageErrorKind.CORRUPT, str(e), default)

    def save(self, key: str, blob: Any) -> StorageResult:
        try:
            self._data[key] = _encode(blob)
        except (TypeError, ValueError) as e:
            return StorageResult.failure(StorageErrorKind.UNSERIALIZABLE, str(e))
        return StorageResult.success()

    def put_raw(self, key: str, raw: str) -> None:
        """Store an already-encoded value (used to simulate corrupt data)."""
        self._data[key] = raw

    def keys(self) -> list[str]:
        return sorted(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data


# =============================================================================
# SQL store
# =============================================================================


class SqlStateStore:
    """
    SQLAlchemy-backed key-value store.

    A single ``vmq_state`` table holds one JSON document per key. Works with
    SQLite (default, ~/.vmq/state.db) and PostgreSQL URLs.
    """

    def __init__(self, url: str | None = None, engine: Engine | None = None):
        """
        Initialize the state store.

        Args:
            url: SQLAlchemy database URL (ignored when ``engine`` is given)
            engine: Pre-built engine, e.g. shared with other components
        """
        if engine is None:
            if not url:
                raise ValueError("SqlStateStore needs a database url or an engine")
            engine = create_engine(url)
        self.engine = engine
        self._init_schema()

        logger.info(f"SqlStateStore initialized at {self.engine.url!r}")

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self.engine.begin() as conn:
            conn.execute(text("""
                CREATE TABLE IF NOT EXISTS vmq_state (
                    key VARCHAR(255) PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP
                )
            """))

    def load(self, key: str, default: Any = None) -> StorageResult:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    text("SELECT value FROM vmq_state WHERE key = :key"),
                    {"key": key},
                ).fetchone()
        except SQLAlchemyError as e:
            return StorageResult.failure(StorageErrorKind.READ_FAILED, str(e), default)

        if row is None:
            return StorageResult.success(default)
        try:
            return StorageResult.success(json.loads(row[0]))
        except json.JSONDecodeError as e:
            return StorageResult.failure(StorageErrorKind.CORRUPT, str(e), default)

    def save(self, key: str, blob: Any) -> StorageResult:
        try:
            encoded = _encode(blob)
        except (TypeError, ValueError) as e:
            return StorageResult.failure(StorageErrorKind.UNSERIALIZABLE, str(e))

        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text("""
                        INSERT INTO vmq_state (key, value, updated_at)
                        VALUES (:key, :value, :updated_at)
                        ON CONFLICT (key) DO UPDATE SET
                            value = excluded.value,
                            updated_at = excluded.updated_at
                    """),
                    {"key": key, "value": encoded, "updated_at": datetime.now(UTC).isoformat()},
                )
        except SQLAlchemyError as e:
            return StorageResult.failure(StorageErrorKind.WRITE_FAILED, str(e))
        return StorageResult.success()

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys, optionally restricted to a prefix."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    text("SELECT key FROM vmq_state WHERE key LIKE :prefix ORDER BY key"),
                    {"prefix": f"{prefix}%"},
                ).fetchall()
        except SQLAlchemyError as e:
            logger.warning(f"Listing keys failed: {e}")
            return []
        return [row[0] for row in rows]

    def close(self) -> None:
        self.engine.dispose()
