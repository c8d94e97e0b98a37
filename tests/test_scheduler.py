"""
Tests de la tarea de medianoche (sin arrancar el scheduler).
"""

from unittest.mock import Mock

from apscheduler.triggers.cron import CronTrigger

from scheduler import create_scheduler, midnight_reset, stop_scheduler


def test_job_registered_at_midnight(engine):
    scheduler = create_scheduler(engine, "Europe/Madrid")
    job = scheduler.get_job("reset_daily_quests")
    assert job is not None
    assert isinstance(job.trigger, CronTrigger)
    fields = {field.name: str(field) for field in job.trigger.fields}
    assert fields["hour"] == "0"
    assert fields["minute"] == "0"
    assert job.args == (engine,)


def test_midnight_reset_wipes_quests(engine, user):
    engine.get_or_regenerate_daily_quests("hunter")
    midnight_reset(engine)
    assert engine.get_system_stats()["last_quest_reset"] is not None
    assert engine.store.count("dailyQuests") == 0


def test_midnight_reset_logs_failures():
    broken = Mock()
    broken.reset_daily_quests.side_effect = RuntimeError("db down")
    midnight_reset(broken)
    broken.reset_daily_quests.assert_called_once()


def test_stop_without_scheduler_is_harmless():
    stop_scheduler(None)
