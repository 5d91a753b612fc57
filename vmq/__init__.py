"""
VMQ practice engine.

Adaptive difficulty, mastery grading, spaced repetition and XP rewards for
violin music-theory drills.
"""

__version__ = "1.0.0"
