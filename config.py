"""
Configuration settings for the VMQ practice engine.

Uses Pydantic Settings for environment variable management with .env file support.
Every tuning constant of the engine lives here so product changes do not
require code edits; component configs read their defaults from these fields.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables (prefix ``VMQ_``)."""

    model_config = SettingsConfigDict(
        env_prefix="VMQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Storage
    # ========================================
    database_url: str = Field(
        default="sqlite:///~/.vmq/state.db",
        description="SQLAlchemy URL of the key-value state store",
    )

    # ========================================
    # Answer recorder
    # ========================================
    history_size: int = Field(
        default=20,
        ge=1,
        description="Capacity of the recent-answer ring buffer per module",
    )
    combo_step: float = Field(
        default=0.1,
        gt=0,
        description="Combo multiplier increase per correct answer",
    )
    combo_max: float = Field(
        default=3.0,
        ge=1.0,
        description="Upper bound of the combo multiplier",
    )

    # ========================================
    # Difficulty adaptation
    # ========================================
    difficulty_levels: list[str] = Field(
        default=["beginner", "intermediate", "advanced"],
        description="Ordered difficulty tiers, easiest first",
    )
    eval_interval: int = Field(
        default=5,
        ge=1,
        description="Evaluate difficulty every N answers",
    )
    min_window_samples: int = Field(
        default=6,
        ge=1,
        description="Below this many samples recent accuracy is neutral (0.5)",
    )
    promote_accuracy: float = Field(
        default=0.85,
        description="Recent accuracy that must be exceeded to promote",
    )
    promote_time_beginner_ms: int = Field(
        default=3500,
        description="Average response time ceiling for beginner -> intermediate",
    )
    promote_time_intermediate_ms: int = Field(
        default=3000,
        description="Average response time ceiling for intermediate -> advanced",
    )
    demote_accuracy_advanced: float = Field(
        default=0.5,
        description="Recent accuracy floor below which advanced may demote",
    )
    demote_accuracy_intermediate: float = Field(
        default=0.4,
        description="Recent accuracy floor below which intermediate may demote",
    )
    demote_consecutive_wrong: int = Field(
        default=5,
        ge=1,
        description="Consecutive wrong answers required before demoting",
    )

    # ========================================
    # Rewards
    # ========================================
    base_xp: int = Field(default=5, ge=0, description="XP for a correct answer")
    wrong_answer_xp: int = Field(default=0, ge=0, description="XP for a wrong answer")
    streak_bonus_threshold: int = Field(
        default=3,
        description="Streak length at which the streak bonus kicks in",
    )
    response_time_bonus_ms: int = Field(
        default=5000,
        description="Answers faster than this earn the speed bonus",
    )
    hint_penalty: float = Field(
        default=0.5,
        ge=0,
        le=1,
        description="Multiplier applied to XP when a hint was used",
    )
    perfect_streak_threshold: int = Field(
        default=10,
        description="Hint-free streak that triggers the perfect-streak message",
    )

    # ========================================
    # Spaced repetition
    # ========================================
    initial_ease: float = Field(default=2.5, description="Ease factor for new items")
    minimum_ease: float = Field(default=1.3, description="Ease factor floor (SM-2)")
    maximum_ease: float = Field(default=2.8, description="Ease factor ceiling")
    review_probability: float = Field(
        default=0.3,
        ge=0,
        le=1,
        description="Chance of serving a due review instead of fresh content",
    )
    due_pool_size: int = Field(
        default=6,
        ge=1,
        description="How many due items to consider when interleaving reviews",
    )

    @field_validator("difficulty_levels")
    @classmethod
    def _levels_not_empty(cls, value: list[str]) -> list[str]:
        cleaned = [v.strip() for v in value if v and v.strip()]
        if not cleaned:
            raise ValueError("difficulty_levels must contain at least one level")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("difficulty_levels must be unique")
        return cleaned

    def resolved_database_url(self) -> str:
        """Database URL with ``~`` expanded for file-based SQLite URLs."""
        prefix = "sqlite:///"
        if self.database_url.startswith(prefix) and "~" in self.database_url:
            path = Path(self.database_url[len(prefix):]).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            return f"{prefix}{path}"
        return self.database_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
