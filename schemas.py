"""
=============================================================================
SCHEMAS.PY — Esquemas (Pydantic)
=============================================================================
Dos familias de esquemas:

  1. REGISTROS del dominio → lo que se guarda en el almacén (User,
     QuestSet...). Se serializan con model_dump(mode="json") y se
     recargan con model_validate, sin perder campos.
  2. PETICIONES / RESPUESTAS de la API.

Convención de nombres:
  XxxCreate   → para crear algo nuevo (POST)
  XxxResponse → lo que devuelve la API (GET)
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from models import EntryType


# =============================================================================
# ===================== REGISTROS DEL DOMINIO =================================
# =============================================================================

class SkillState(BaseModel):
    """Estado de una habilidad. Invariante: xp < umbral(level)"""
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    # xp → progreso dentro del nivel actual
    total_xp: int = Field(default=0, ge=0)
    # total_xp → suma histórica, solo crece
    last_level_up: datetime


class JournalEntryRecord(BaseModel):
    """Entrada del diario. Inmutable una vez creada."""
    id: str
    content: str
    type: EntryType = EntryType.text
    analysis: dict[str, float] = Field(default_factory=dict)
    # analysis → {habilidad: confianza 0-100} tal como llegó del clasificador
    xp_earned: int = 0
    timestamp: datetime
    model_config = {"frozen": True}


class UserProfile(BaseModel):
    id: str
    skills: dict[str, SkillState]
    total_xp: int = 0
    # total_xp → contador propio; NO es la suma de total_xp de las habilidades
    journal_entries: list[JournalEntryRecord] = Field(default_factory=list)
    created_at: datetime
    last_active: datetime


class Quest(BaseModel):
    id: str
    title: str
    skill: str
    xp_reward: int = 50
    completed: bool = False
    completed_at: Optional[datetime] = None


class DailyQuestSet(BaseModel):
    """Las misiones de un usuario para UNA fecha local (YYYY-MM-DD)"""
    user_id: str
    date: str
    quests: list[Quest]


class Milestone(BaseModel):
    """Hito derivado: nunca se guarda, se recalcula al leer"""
    skill: str
    level: int
    label: str
    earned: bool = True
    type: str = "milestone"


# =============================================================================
# ===================== RESULTADOS DEL MOTOR ==================================
# =============================================================================

class EntryScore(BaseModel):
    base_xp: int
    per_skill_awards: dict[str, int] = Field(default_factory=dict)
    xp_earned: int


class SkillXPOutcome(BaseModel):
    user: UserProfile
    leveled_up_skills: list[str] = Field(default_factory=list)
    levels_gained: dict[str, int] = Field(default_factory=dict)


class JournalSubmission(BaseModel):
    entry: JournalEntryRecord
    analysis: dict[str, float]
    xp_earned: int
    user: UserProfile
    leveled_up_skills: list[str] = Field(default_factory=list)


class QuestCompletion(BaseModel):
    quest: Quest
    user: UserProfile
    leveled_up: bool


# =============================================================================
# ===================== API ===================================================
# =============================================================================

class JournalEntryCreate(BaseModel):
    """Entrada nueva. Si es audio, `content` ya viene transcrito."""
    content: str = Field(min_length=1, max_length=20000)
    type: EntryType = EntryType.text


class SkillCategoryResponse(BaseModel):
    name: str
    description: str
    color: str


class UserResponse(BaseModel):
    user: UserProfile
    categories: dict[str, SkillCategoryResponse]


class JournalPageResponse(BaseModel):
    entries: list[JournalEntryRecord]
    total: int
    has_more: bool


class RewardsResponse(BaseModel):
    rewards: list[Milestone]


class SystemStatsResponse(BaseModel):
    total_users: int
    total_entries: int
    last_quest_reset: Optional[datetime] = None
    version: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: datetime
    version: str
