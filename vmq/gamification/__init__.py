"""XP and violin levels."""

from vmq.gamification.levels import LEVELS, LevelLedger, level_for, next_level_progress

__all__ = ["LEVELS", "LevelLedger", "level_for", "next_level_progress"]
