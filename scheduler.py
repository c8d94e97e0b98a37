"""
=============================================================================
SCHEDULER.PY — Tareas Programadas
=============================================================================
Una sola tarea: a medianoche (hora local de APP_TIMEZONE) se borran las
misiones diarias de TODOS los usuarios.

No es imprescindible: si la tarea no llega a ejecutarse, cada usuario
recibe igualmente misiones nuevas al pedirlas en otra fecha
(engine.get_or_regenerate_daily_quests). Las dos cosas conviven:
el borrado solo elimina sets y la regeneración solo mira la fecha.

Usa APScheduler con CronTrigger.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import pytz

from engine import ProgressionEngine

logger = logging.getLogger("skilljournal.scheduler")


def midnight_reset(engine: ProgressionEngine):
    """Borra los sets de misiones. Un fallo se registra y no para el scheduler."""
    try:
        engine.reset_daily_quests()
    except Exception as e:
        logger.error(f"❌ Error reiniciando misiones diarias: {e}")


def create_scheduler(engine: ProgressionEngine, timezone: str = "UTC") -> AsyncIOScheduler:
    """Crea el scheduler con la tarea de medianoche"""
    scheduler = AsyncIOScheduler(timezone=pytz.timezone(timezone))

    scheduler.add_job(
        midnight_reset,
        CronTrigger(hour=0, minute=0, timezone=pytz.timezone(timezone)),
        args=[engine],
        id="reset_daily_quests",
        name="Reiniciar misiones diarias",
        replace_existing=True,
    )

    logger.info(f"⏰ Scheduler configurado: reinicio de misiones a las 00:00 ({timezone})")
    return scheduler


def start_scheduler(scheduler: Optional[AsyncIOScheduler]):
    if scheduler and not scheduler.running:
        scheduler.start()
        logger.info("⏰ Scheduler arrancado")


def stop_scheduler(scheduler: Optional[AsyncIOScheduler]):
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("⏰ Scheduler parado")
