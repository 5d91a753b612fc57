"""
Unit tests for XP rewards and feedback messages.
"""

import random

import pytest

from vmq.core.errors import InvalidArgument
from vmq.study.rewards import RewardCalculator, RewardConfig, compute_reward, reward_breakdown


class TestComputeReward:
    def test_worked_example(self):
        # 5 + 2 streak + 2 speed = 9; x1.5 = 13; hint halves to 6
        xp = compute_reward(
            correct=True, response_time_ms=1000, streak=5,
            combo_multiplier=1.5, used_hint=True, base_xp=5,
        )
        assert xp == 6

    def test_base_only(self):
        assert compute_reward(True, 6000, 0, 1.0, False) == 5

    def test_streak_bonus_threshold(self):
        assert compute_reward(True, 6000, 2, 1.0, False) == 5
        assert compute_reward(True, 6000, 3, 1.0, False) == 6

    def test_speed_bonus_boundary(self):
        assert compute_reward(True, 4999, 0, 1.0, False) == 7
        assert compute_reward(True, 5000, 0, 1.0, False) == 5

    def test_combo_floor(self):
        assert compute_reward(True, 6000, 0, 2.0, False) == 10
        assert compute_reward(True, 6000, 0, 0.5, False) == 5

    def test_wrong_answer(self):
        assert compute_reward(False, 500, 9, 3.0, False) == 0

    def test_wrong_answer_configured_xp(self):
        assert compute_reward(False, 500, 0, 1.0, False, config=RewardConfig(wrong_answer_xp=1)) == 1

    def test_never_negative(self):
        rand = random.Random(11)
        for _ in range(500):
            xp = compute_reward(
                rand.random() < 0.5,
                rand.randint(0, 10000),
                rand.randint(0, 50),
                rand.uniform(1.0, 3.0),
                rand.random() < 0.3,
                base_xp=rand.randint(0, 20),
            )
            assert isinstance(xp, int)
            assert xp >= 0

    @pytest.mark.parametrize("kwargs", [
        {"response_time_ms": -1},
        {"streak": -2},
        {"base_xp": -5},
    ])
    def test_negative_inputs_rejected(self, kwargs):
        args = {
            "correct": True, "response_time_ms": 1000, "streak": 0,
            "combo_multiplier": 1.0, "used_hint": False,
        }
        args.update(kwargs)
        with pytest.raises(InvalidArgument):
            compute_reward(**args)

    def test_breakdown(self):
        breakdown = reward_breakdown(True, 1000, 5, 1.5, True)
        assert breakdown == {
            "base": 5,
            "streak_bonus": 2,
            "speed_bonus": 2,
            "after_combo": 13,
            "hint_penalty": 7,
            "total": 6,
        }


class TestFeedback:
    def setup_method(self):
        self.calc = RewardCalculator()

    def test_correct(self):
        result = self.calc.reward(True, 3000, streak=0, combo_multiplier=1.0)
        assert result.xp_awarded == 7
        assert result.feedback_message == "Correct! +7 XP"

    def test_fast(self):
        result = self.calc.reward(True, 1500, streak=0, combo_multiplier=1.0)
        assert result.feedback_message == "Fast! +7 XP"

    def test_streak_message(self):
        result = self.calc.reward(True, 3000, streak=9, combo_multiplier=1.0)
        assert result.feedback_message.startswith("10 streak! +")

    def test_perfect_streak(self):
        result = self.calc.reward(True, 3000, streak=12, combo_multiplier=1.0, perfect_streak=12)
        assert result.feedback_message == f"PERFECT STREAK! +{result.xp_awarded} XP"

    def test_wrong_with_answer(self):
        result = self.calc.reward(False, 3000, streak=0, combo_multiplier=1.0, correct_answer="F#")
        assert result.xp_awarded == 0
        assert result.feedback_message == "Correct answer: F#."

    def test_wrong_suggests_lower_difficulty(self):
        result = self.calc.reward(False, 3000, streak=0, combo_multiplier=1.0, consecutive_wrong=3)
        assert result.feedback_message == "Not quite. Consider lowering difficulty."
