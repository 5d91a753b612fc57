"""
Study Module for VMQ practice.

Provides services for:
- Answer recording and module statistics
- Difficulty adaptation
- Review interleaving
- XP rewards and feedback
- Confusion tracking
"""

from vmq.study.confusion import ConfusionTracker
from vmq.study.difficulty import DifficultyAdapter, DifficultyConfig
from vmq.study.interleaver import InterleaveConfig, ReviewInterleaver
from vmq.study.practice_service import PracticeEngine
from vmq.study.recorder import AnswerRecorder, RecorderConfig
from vmq.study.rewards import RewardCalculator, RewardConfig, compute_reward

__all__ = [
    "AnswerRecorder",
    "ConfusionTracker",
    "DifficultyAdapter",
    "DifficultyConfig",
    "InterleaveConfig",
    "PracticeEngine",
    "RecorderConfig",
    "ReviewInterleaver",
    "RewardCalculator",
    "RewardConfig",
    "compute_reward",
]
