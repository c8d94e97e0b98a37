"""
Tests del generador de misiones y de la lógica de completarlas.
"""

import random
from datetime import datetime, date

import pytest
import pytz

from exceptions import NotFoundError, QuestAlreadyCompletedError
from models import SKILL_KEYS
from quests import (
    QUEST_TEMPLATES, DAILY_QUEST_COUNT, QUEST_XP_REWARD,
    generate_daily_quests, mark_completed, is_current, local_today, as_date_key,
)

NOW = datetime(2026, 10, 17, 9, 0, tzinfo=pytz.utc)


def test_generates_three_fresh_quests():
    quest_set = generate_daily_quests("hunter", SKILL_KEYS, "2026-10-17", random.Random(1))
    assert quest_set.user_id == "hunter"
    assert quest_set.date == "2026-10-17"
    assert len(quest_set.quests) == DAILY_QUEST_COUNT
    for quest in quest_set.quests:
        assert quest.skill in SKILL_KEYS
        assert quest.title in QUEST_TEMPLATES[quest.skill]
        assert quest.xp_reward == QUEST_XP_REWARD
        assert quest.completed is False
        assert quest.completed_at is None
    assert len({q.id for q in quest_set.quests}) == DAILY_QUEST_COUNT


def test_same_seed_same_quests():
    a = generate_daily_quests("hunter", SKILL_KEYS, "2026-10-17", random.Random(42))
    b = generate_daily_quests("hunter", SKILL_KEYS, "2026-10-17", random.Random(42))
    assert a == b


def test_skills_may_repeat():
    quest_set = generate_daily_quests("hunter", ["fitness"], "2026-10-17", random.Random(3))
    assert [q.skill for q in quest_set.quests] == ["fitness"] * DAILY_QUEST_COUNT


def test_skill_without_templates_gets_generic_title():
    quest_set = generate_daily_quests("hunter", ["public_relations"], "2026-10-17", random.Random(3))
    assert quest_set.quests[0].title == "Complete a task related to Public Relations"


def test_empty_skill_set_rejected():
    with pytest.raises(NotFoundError):
        generate_daily_quests("hunter", [], "2026-10-17", random.Random(3))


def test_date_keys():
    assert as_date_key(date(2026, 10, 17)) == "2026-10-17"
    assert as_date_key(NOW) == "2026-10-17"
    assert as_date_key("2026-10-17") == "2026-10-17"


def test_local_today_uses_timezone():
    late_evening_utc = datetime(2026, 10, 17, 23, 30, tzinfo=pytz.utc)
    assert local_today("UTC", late_evening_utc) == "2026-10-17"
    assert local_today("Europe/Madrid", late_evening_utc) == "2026-10-18"
    assert local_today("America/New_York", late_evening_utc) == "2026-10-17"


def test_naive_datetime_treated_as_utc():
    assert local_today("Asia/Tokyo", datetime(2026, 10, 17, 16, 0)) == "2026-10-18"


def test_is_current():
    quest_set = generate_daily_quests("hunter", SKILL_KEYS, "2026-10-17", random.Random(1))
    assert is_current(quest_set, "2026-10-17")
    assert not is_current(quest_set, "2026-10-18")
    assert not is_current(None, "2026-10-17")


class TestMarkCompleted:

    @pytest.fixture
    def quest_set(self):
        return generate_daily_quests("hunter", SKILL_KEYS, "2026-10-17", random.Random(5))

    def test_marks_once(self, quest_set):
        quest = mark_completed(quest_set, quest_set.quests[1].id, NOW)
        assert quest.completed is True
        assert quest.completed_at == NOW
        assert quest_set.quests[1].completed is True

    def test_second_completion_rejected(self, quest_set):
        quest_id = quest_set.quests[0].id
        mark_completed(quest_set, quest_id, NOW)
        with pytest.raises(QuestAlreadyCompletedError):
            mark_completed(quest_set, quest_id, datetime(2026, 10, 17, 10, 0, tzinfo=pytz.utc))
        assert quest_set.quests[0].completed_at == NOW

    def test_already_completed_is_a_not_found(self, quest_set):
        mark_completed(quest_set, quest_set.quests[0].id, NOW)
        with pytest.raises(NotFoundError):
            mark_completed(quest_set, quest_set.quests[0].id, NOW)

    def test_unknown_quest(self, quest_set):
        with pytest.raises(NotFoundError):
            mark_completed(quest_set, "does-not-exist", NOW)
