"""
Tests del umbral de XP, el libro de habilidades, la puntuación de
entradas y los hitos.
"""

import math
import random
from datetime import datetime

import pytest
import pytz

from exceptions import NotFoundError, ValidationError, InvariantViolation
from gamification import (
    xp_threshold, get_level_info, new_user_profile, apply_xp, check_ledger,
    score_entry, base_xp_for, total_awarded, derive_milestones, milestone_level,
)
from models import SKILL_KEYS

NOW = datetime(2026, 10, 17, 9, 0, tzinfo=pytz.utc)


@pytest.fixture
def profile():
    return new_user_profile("hunter", NOW)


class TestXPThreshold:

    def test_first_levels(self):
        assert [xp_threshold(level) for level in range(1, 6)] == [100, 150, 225, 337, 506]

    def test_matches_float_formula_where_float_is_exact(self):
        for level in range(1, 30):
            assert xp_threshold(level) == math.floor(100 * 1.5 ** (level - 1))

    def test_strictly_increasing(self):
        thresholds = [xp_threshold(level) for level in range(1, 80)]
        assert all(a < b for a, b in zip(thresholds, thresholds[1:]))

    def test_level_zero_rejected(self):
        with pytest.raises(ValidationError):
            xp_threshold(0)

    def test_level_info_progress(self, profile):
        apply_xp(profile, "fitness", 75, NOW)
        info = get_level_info(profile.skills["fitness"])
        assert info["level"] == 1
        assert info["xp_next_level"] == 100
        assert info["xp_progress"] == 75.0


class TestApplyXP:

    def test_new_profile_has_all_skills(self, profile):
        assert set(profile.skills) == set(SKILL_KEYS)
        assert all(s.level == 1 and s.xp == 0 and s.total_xp == 0 for s in profile.skills.values())

    def test_below_threshold_no_level_up(self, profile):
        assert apply_xp(profile, "learning", 99, NOW) == 0
        assert profile.skills["learning"].level == 1
        assert profile.skills["learning"].xp == 99

    def test_exact_threshold_levels_up_once(self, profile):
        assert apply_xp(profile, "learning", 100, NOW) == 1
        state = profile.skills["learning"]
        assert (state.level, state.xp, state.total_xp) == (2, 0, 100)

    def test_large_award_crosses_several_thresholds(self, profile):
        # 250 → 100 (nivel 2) → 150 (nivel 3) → 0 restantes
        assert apply_xp(profile, "creativity", 250, NOW) == 2
        state = profile.skills["creativity"]
        assert (state.level, state.xp, state.total_xp) == (3, 0, 250)

    def test_leftover_carries_over(self, profile):
        apply_xp(profile, "creativity", 90, NOW)
        assert apply_xp(profile, "creativity", 300, NOW) == 2
        state = profile.skills["creativity"]
        assert (state.level, state.xp) == (3, 140)

    def test_level_up_stamps_time(self, profile):
        later = datetime(2026, 10, 18, tzinfo=pytz.utc)
        apply_xp(profile, "fitness", 100, later)
        assert profile.skills["fitness"].last_level_up == later
        assert profile.last_active == later

    def test_zero_is_a_noop(self, profile):
        later = datetime(2026, 10, 18, tzinfo=pytz.utc)
        assert apply_xp(profile, "fitness", 0, later) == 0
        assert profile.skills["fitness"].total_xp == 0
        assert profile.last_active == NOW

    def test_unknown_skill(self, profile):
        with pytest.raises(NotFoundError):
            apply_xp(profile, "juggling", 10, NOW)

    @pytest.mark.parametrize("amount", [-1, 2.5, True])
    def test_invalid_amount(self, profile, amount):
        with pytest.raises(ValidationError):
            apply_xp(profile, "fitness", amount, NOW)

    def test_invariant_holds_after_random_awards(self, profile):
        rng = random.Random(7)
        for _ in range(500):
            apply_xp(profile, rng.choice(SKILL_KEYS), rng.randint(0, 2000), NOW)
            for state in profile.skills.values():
                assert 0 <= state.xp < xp_threshold(state.level)
        check_ledger(profile)

    def test_check_ledger_detects_corruption(self, profile):
        profile.skills["financial"].xp = 500
        with pytest.raises(InvariantViolation):
            check_ledger(profile)


class TestScoreEntry:

    def test_reference_example(self):
        score = score_entry("x" * 100, {"creativity": 80, "fitness": 20})
        assert score.base_xp == 10
        assert score.per_skill_awards == {"creativity": 8}
        assert score.xp_earned == 18

    def test_empty_analysis_gives_base_only(self):
        score = score_entry("x" * 250, {})
        assert score.per_skill_awards == {}
        assert score.xp_earned == 25

    def test_base_is_capped(self):
        assert base_xp_for("x" * 5000) == 100

    def test_short_text_scores_zero_without_error(self):
        score = score_entry("tiny", {"learning": 90})
        assert score.base_xp == 0
        assert score.per_skill_awards == {"learning": 0}
        assert score.xp_earned == 0

    def test_threshold_is_strict(self):
        score = score_entry("x" * 100, {"learning": 30, "productivity": 31})
        assert "learning" not in score.per_skill_awards
        assert score.per_skill_awards["productivity"] == 3

    def test_unknown_labels_ignored(self):
        score = score_entry("x" * 100, {"astrology": 99})
        assert score.per_skill_awards == {}

    def test_floor_is_exact(self):
        # 57/100 * 100 en float da 56.999...; el resultado debe ser 57
        score = score_entry("x" * 1000, {"leadership": 57})
        assert score.per_skill_awards["leadership"] == 57

    def test_total_counts_base_once(self):
        assert total_awarded(10, {"creativity": 8, "learning": 5}) == 23


class TestMilestones:

    def test_milestone_level(self):
        assert milestone_level(4) == 0
        assert milestone_level(5) == 5
        assert milestone_level(12) == 10

    def test_level_twelve_yields_ten(self, profile):
        profile.skills["creativity"].level = 12
        profile.skills["fitness"].level = 4
        rewards = derive_milestones(profile)
        assert len(rewards) == 1
        reward = rewards[0]
        assert (reward.skill, reward.level, reward.earned) == ("creativity", 10, True)
        assert reward.label == "Level 10 Creativity Master!"

    def test_no_milestones_below_five(self, profile):
        assert derive_milestones(profile) == []

    def test_idempotent(self, profile):
        profile.skills["learning"].level = 20
        profile.skills["emotional_intelligence"].level = 7
        assert derive_milestones(profile) == derive_milestones(profile)
        assert [m.skill for m in derive_milestones(profile)] == ["learning", "emotional_intelligence"]
