"""
=============================================================================
QUESTS.PY — Misiones Diarias
=============================================================================
Cada día el usuario recibe 3 misiones:
  - Habilidad al azar (puede repetirse entre misiones)
  - Título al azar de las 3 plantillas de esa habilidad
  - Recompensa fija de 50 XP

Un set de misiones solo vale para la FECHA LOCAL en que se generó.
Si se piden en otra fecha → se regenera el set completo (el viejo se
descarta). Además, scheduler.py borra todos los sets a medianoche.

El azar llega inyectado (random.Random) para que los tests puedan
fijar la semilla.
"""

import random
import uuid
from datetime import datetime, date
from typing import Optional, Sequence

import pytz

from schemas import Quest, DailyQuestSet
from exceptions import NotFoundError, QuestAlreadyCompletedError
from gamification import skill_display_name

DAILY_QUEST_COUNT = 3
QUEST_XP_REWARD = 50

QUEST_TEMPLATES = {
    "communication": [
        "Have a meaningful conversation with someone new",
        "Practice public speaking for 5 minutes",
        "Write a thoughtful message to a friend",
    ],
    "leadership": [
        "Take initiative on a group project",
        "Mentor someone for 15 minutes",
        "Make a difficult decision and explain your reasoning",
    ],
    "creativity": [
        "Create something artistic (draw, write, compose)",
        "Brainstorm 10 new ideas",
        "Try a new creative hobby",
    ],
    "fitness": [
        "Exercise for 30 minutes",
        "Try a new workout routine",
        "Take a long walk in nature",
    ],
    "learning": [
        "Read for 30 minutes",
        "Learn something new online",
        "Practice a skill you want to improve",
    ],
    "productivity": [
        "Complete 3 important tasks",
        "Organize your workspace",
        "Create a detailed plan for tomorrow",
    ],
    "emotional_intelligence": [
        "Practice mindfulness for 10 minutes",
        "Reflect on your emotions throughout the day",
        "Show empathy to someone in need",
    ],
    "financial": [
        "Review your budget",
        "Research an investment opportunity",
        "Save money on a purchase",
    ],
}


# =============================================================================
# ===================== FECHAS LOCALES ========================================
# =============================================================================

def local_today(tz_name: str = "UTC", now: Optional[datetime] = None) -> str:
    """
    Fecha local (YYYY-MM-DD) en la zona horaria indicada.
    Un datetime sin zona se interpreta como UTC.
    """
    tz = pytz.timezone(tz_name)
    now = now or datetime.now(pytz.utc)
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(tz).date().isoformat()


def as_date_key(value) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


# =============================================================================
# ===================== GENERADOR =============================================
# =============================================================================

def templates_for(skill: str) -> list[str]:
    """Plantillas de la habilidad, o una genérica si no tiene"""
    return QUEST_TEMPLATES.get(skill) or [f"Complete a task related to {skill_display_name(skill)}"]


def generate_daily_quests(
    user_id: str,
    skill_keys: Sequence[str],
    quest_date,
    rng: Optional[random.Random] = None,
) -> DailyQuestSet:
    """Genera las 3 misiones del día para `quest_date`"""
    rng = rng or random.Random()
    skills = list(skill_keys)
    if not skills:
        raise NotFoundError("User has no skills to generate quests for", {"user_id": user_id})

    quests = []
    for _ in range(DAILY_QUEST_COUNT):
        skill = rng.choice(skills)
        quests.append(Quest(
            id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
            title=rng.choice(templates_for(skill)),
            skill=skill,
            xp_reward=QUEST_XP_REWARD,
            completed=False,
        ))

    return DailyQuestSet(user_id=user_id, date=as_date_key(quest_date), quests=quests)


def is_current(quest_set: Optional[DailyQuestSet], today) -> bool:
    return quest_set is not None and quest_set.date == as_date_key(today)


# =============================================================================
# ===================== COMPLETAR MISIONES ====================================
# =============================================================================

def mark_completed(quest_set: DailyQuestSet, quest_id: str, now: datetime) -> Quest:
    """
    Marca la misión como completada dentro del set (en el sitio).

    Falla si no existe o si ya estaba completada: completar dos veces
    se rechaza, no se ignora en silencio.
    """
    quest = next((q for q in quest_set.quests if q.id == quest_id), None)
    if quest is None:
        raise NotFoundError(
            "Quest not found in today's set",
            {"quest_id": quest_id, "date": quest_set.date},
        )
    if quest.completed:
        raise QuestAlreadyCompletedError(
            "Quest already completed",
            {"quest_id": quest_id, "completed_at": quest.completed_at.isoformat() if quest.completed_at else None},
        )

    quest.completed = True
    quest.completed_at = now
    return quest
