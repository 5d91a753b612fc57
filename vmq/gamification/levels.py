"""
XP ledger with the 20 violin levels.

Default XPLedger collaborator: keeps the running XP total under ``xp:total``
and grants a one-off bonus whenever an award crosses into a new level.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from vmq.core.collaborators import StorageBackend, XPAward
from vmq.core.errors import InvalidArgument
from vmq.core.utils import clamp, round_half_up
from vmq.delivery.state_store import XP_TOTAL_KEY, read_blob, write_through

MIN_LEVEL_BONUS = 25


@dataclass(frozen=True)
class Level:
    level: int
    title: str
    min_xp: int
    repertoire: str


LEVELS: tuple[Level, ...] = (
    Level(1, "Beginner", 0, "Suzuki Bk1"),
    Level(2, "Note Reader", 50, "Minuet G"),
    Level(3, "Interval Ear", 150, "Bach A-minor"),
    Level(4, "Key Master", 300, "Kreutzer #1"),
    Level(5, "Rhythm Sense", 500, "Gavottes"),
    Level(6, "Bieler Basics", 800, "Suzuki Bk2"),
    Level(7, "Week Warrior", 1200, "Viotti"),
    Level(8, "Hand Frame", 1700, "Kreutzer #2"),
    Level(9, "Bow Control", 2300, "Wieniawski"),
    Level(10, "Position I", 3000, "Bruch VC"),
    Level(11, "Scales Pro", 3800, "Major scales"),
    Level(12, "Month Master", 4700, "Paganini"),
    Level(13, "Vibrato", 5700, "Ysaye"),
    Level(14, "Shifting", 6800, "3rd pos"),
    Level(15, "Spiccato", 8000, "Ševčík"),
    Level(16, "Arpeggio", 9300, "Bach Partita"),
    Level(17, "Double Stops", 10700, "Sonatas"),
    Level(18, "Cadenza", 12200, "Concerti"),
    Level(19, "Virtuoso", 13800, "Caprices"),
    Level(20, "Maestro", 15500, "All Repertoire"),
)


@dataclass(frozen=True)
class LevelProgress:
    current_level: int
    next_level: int
    current: int  # XP gained inside the current level
    required: int  # XP span of the current level (0 at max level)
    percentage: int

    @property
    def xp_to_next(self) -> int:
        return max(0, self.required - self.current) if self.required else 0


def level_for(xp: int) -> Level:
    """Highest level whose threshold ``xp`` reaches."""
    best = LEVELS[0]
    for lvl in LEVELS:
        if xp >= lvl.min_xp:
            best = lvl
    return best


def next_level_progress(xp: int) -> LevelProgress:
    level = level_for(xp)
    if level.level == LEVELS[-1].level:
        return LevelProgress(level.level, level.level, xp - level.min_xp, 0, 100)

    nxt = LEVELS[level.level]
    span = nxt.min_xp - level.min_xp
    gained = xp - level.min_xp
    percentage = int(clamp(round_half_up(gained / span * 100), 0, 100))
    return LevelProgress(level.level, nxt.level, gained, span, percentage)


def level_bonus(level: int) -> int:
    """XP granted on reaching ``level``."""
    if level >= 15:
        bonus = 100
    elif level >= 10:
        bonus = 75
    elif level >= 5:
        bonus = 60
    else:
        bonus = 50
    return max(MIN_LEVEL_BONUS, bonus)


class LevelLedger:
    """Running XP total with level-up bonuses."""

    def __init__(self, storage: StorageBackend, log: Any = None):
        self.storage = storage
        self.log = log or logger.bind(component="xp")

        blob = read_blob(self.storage, XP_TOTAL_KEY, 0, self.log)
        if isinstance(blob, bool) or not isinstance(blob, (int, float)) or blob < 0:
            self.log.warning(f"Ignoring malformed XP total: {blob!r}")
            blob = 0
        self._total = int(blob)

    def total(self) -> int:
        return self._total

    def level(self) -> Level:
        return level_for(self._total)

    def progress(self) -> LevelProgress:
        return next_level_progress(self._total)

    def add_xp(self, amount: int, reason: str, metadata: dict[str, Any] | None = None) -> XPAward:
        """
        Add XP, applying the level-up bonus when a new level is reached.

        Raises:
            InvalidArgument: negative or non-integer amount
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidArgument(f"XP amount must be a non-negative integer, got {amount!r}")

        old_xp = self._total
        new_xp = old_xp + amount
        old_level = level_for(old_xp).level
        new_level = level_for(new_xp).level

        bonus = 0
        if new_level > old_level:
            bonus = level_bonus(new_level)
            new_xp += bonus
            self.log.info(f"Level up: {old_level} -> {new_level} (+{bonus} bonus XP)")

        self._total = new_xp
        if amount or bonus:
            self.log.debug(f"+{amount} XP for {reason} ({metadata or {}}) -> {new_xp}")
            write_through(self.storage, XP_TOTAL_KEY, new_xp, self.log)

        return XPAward(
            old_xp=old_xp, new_xp=new_xp,
            old_level=old_level, new_level=level_for(new_xp).level,
            bonus_xp=bonus,
        )
