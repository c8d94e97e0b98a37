"""
=============================================================================
GAMIFICATION.PY — Motor de Progresión de Habilidades
=============================================================================
Gestiona:
  - Umbral de XP por nivel (curva exponencial x1.5)
  - Libro de habilidades: aplicar XP y detectar subidas de nivel
  - Puntuación de entradas del diario → XP por habilidad
  - Hitos (cada 5 niveles) derivados del estado actual

Todo aquí es cálculo en memoria sobre los esquemas de schemas.py.
Guardar en el almacén es cosa de engine.py.
"""

from datetime import datetime, timezone
from typing import Optional
import logging

from models import SKILL_KEYS
from schemas import UserProfile, SkillState, EntryScore, Milestone
from exceptions import NotFoundError, ValidationError, InvariantViolation

logger = logging.getLogger("skilljournal.gamification")


# =============================================================================
# ===================== CATÁLOGO DE HABILIDADES ===============================
# =============================================================================

SKILL_CATEGORIES = {
    "communication": {
        "name": "Communication",
        "description": "Speaking, writing, and interpersonal skills",
        "color": "#4CAF50",
    },
    "leadership": {
        "name": "Leadership",
        "description": "Team management and decision-making abilities",
        "color": "#2196F3",
    },
    "creativity": {
        "name": "Creativity",
        "description": "Innovation, artistic expression, and problem-solving",
        "color": "#9C27B0",
    },
    "fitness": {
        "name": "Fitness",
        "description": "Physical health and exercise routines",
        "color": "#FF9800",
    },
    "learning": {
        "name": "Learning",
        "description": "Knowledge acquisition and skill development",
        "color": "#607D8B",
    },
    "productivity": {
        "name": "Productivity",
        "description": "Time management and task completion",
        "color": "#795548",
    },
    "emotional_intelligence": {
        "name": "Emotional Intelligence",
        "description": "Self-awareness and emotional regulation",
        "color": "#E91E63",
    },
    "financial": {
        "name": "Financial",
        "description": "Money management and financial planning",
        "color": "#4CAF50",
    },
}


def skill_display_name(skill: str) -> str:
    return SKILL_CATEGORIES.get(skill, {}).get("name", skill.replace("_", " ").title())


# =============================================================================
# ===================== SISTEMA DE NIVELES ====================================
# =============================================================================
# Cada nivel necesita un 50% más de XP que el anterior.
# Fórmula: umbral = floor(100 * 1.5^(nivel-1))
# Nivel 1 → 100 XP, Nivel 2 → 150 XP, Nivel 3 → 225 XP, Nivel 4 → 337 XP...

BASE_LEVEL_XP = 100


def xp_threshold(level: int) -> int:
    """
    XP necesario para pasar del nivel actual al siguiente.

    1.5^n = 3^n / 2^n, así que se calcula con enteros: el resultado es
    exacto para cualquier nivel (con float, a partir de ~nivel 35 se
    pierde precisión).
    """
    if level < 1:
        raise ValidationError("Level must be >= 1", {"level": level})
    n = level - 1
    return (BASE_LEVEL_XP * 3 ** n) // (2 ** n)


def get_level_info(state: SkillState) -> dict:
    """Progreso de una habilidad para mostrar en la UI"""
    xp_needed = xp_threshold(state.level)
    return {
        "level": state.level,
        "xp": state.xp,
        "total_xp": state.total_xp,
        "xp_next_level": xp_needed,
        "xp_progress": round((state.xp / xp_needed) * 100, 1),
    }


# =============================================================================
# ===================== LIBRO DE HABILIDADES ==================================
# =============================================================================

def new_user_profile(user_id: str, now: datetime) -> UserProfile:
    """Usuario nuevo: las 8 habilidades a nivel 1 y 0 XP"""
    return UserProfile(
        id=user_id,
        skills={skill: SkillState(last_level_up=now) for skill in SKILL_KEYS},
        total_xp=0,
        journal_entries=[],
        created_at=now,
        last_active=now,
    )


def apply_xp(user: UserProfile, skill: str, amount: int, now: Optional[datetime] = None) -> int:
    """
    Suma XP a una habilidad y sube de nivel tantas veces como haga falta.

    Modifica `user` en el sitio. Retorna el número de niveles ganados
    (0 si no subió).

    Ejemplo: nivel 1, xp 0, se otorgan 250
      → 250 >= 100 → nivel 2, quedan 150
      → 150 >= 150 → nivel 3, quedan 0
      → retorna 2
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise ValidationError("XP amount must be a non-negative integer", {"amount": amount})
    state = user.skills.get(skill)
    if state is None:
        raise NotFoundError(f"Unknown skill: {skill}", {"skill": skill})
    if amount == 0:
        return 0

    now = now or datetime.now(timezone.utc)
    state.xp += amount
    state.total_xp += amount

    levels_gained = 0
    while state.xp >= xp_threshold(state.level):
        state.xp -= xp_threshold(state.level)
        state.level += 1
        levels_gained += 1

    if levels_gained:
        state.last_level_up = now
        logger.info(f"⬆️ {user.id}: {skill} sube a nivel {state.level} (+{levels_gained})")

    user.last_active = now
    check_skill_invariant(skill, state)
    return levels_gained


def check_skill_invariant(skill: str, state: SkillState):
    """0 <= xp < umbral(level). Si falla, hay un bug en apply_xp."""
    if not (0 <= state.xp < xp_threshold(state.level)):
        raise InvariantViolation(
            f"Skill ledger inconsistent for {skill}",
            {"skill": skill, "level": state.level, "xp": state.xp},
        )


def check_ledger(user: UserProfile):
    for skill, state in user.skills.items():
        check_skill_invariant(skill, state)


# =============================================================================
# ===================== PUNTUACIÓN DE ENTRADAS ================================
# =============================================================================
# XP base por longitud: 1 XP cada 10 caracteres, máximo 100.
# Cada habilidad con confianza > 30 recibe su parte proporcional del base.

MAX_BASE_XP = 100
CHARS_PER_XP = 10
CONFIDENCE_THRESHOLD = 30


def base_xp_for(text: str) -> int:
    return min(MAX_BASE_XP, len(text) // CHARS_PER_XP)


def skill_xp_for(confidence: float, base_xp: int) -> int:
    """floor(confidence/100 * base), multiplicando antes para no arrastrar error de float"""
    return int(confidence * base_xp // 100)


def total_awarded(base_xp: int, per_skill_awards: dict[str, int]) -> int:
    """
    XP total de la entrada = base + suma de las partes por habilidad.

    El base se cuenta una vez aunque también alimenta cada parte; así lo
    calculaba siempre la app y los totales guardados dependen de ello.
    """
    return base_xp + sum(per_skill_awards.values())


def score_entry(text: str, analysis: dict[str, float]) -> EntryScore:
    """
    Convierte el análisis del clasificador en XP por habilidad.

    Ejemplo: texto de 100 caracteres, {creativity: 80, fitness: 20}
      base = 10
      creativity → floor(0.8 * 10) = 8
      fitness    → 20 <= 30, no recibe nada
      total      → 10 + 8 = 18
    """
    base_xp = base_xp_for(text)
    per_skill_awards: dict[str, int] = {}
    for skill, confidence in analysis.items():
        if skill not in SKILL_CATEGORIES or confidence <= CONFIDENCE_THRESHOLD:
            continue
        per_skill_awards[skill] = skill_xp_for(confidence, base_xp)

    return EntryScore(
        base_xp=base_xp,
        per_skill_awards=per_skill_awards,
        xp_earned=total_awarded(base_xp, per_skill_awards),
    )


# =============================================================================
# ===================== HITOS Y RECOMPENSAS ===================================
# =============================================================================

MILESTONE_STEP = 5


def milestone_level(level: int) -> int:
    """Último múltiplo de 5 alcanzado (0 si aún no llega a 5)"""
    return (level // MILESTONE_STEP) * MILESTONE_STEP


def derive_milestones(user: UserProfile) -> list[Milestone]:
    """Un hito por habilidad con nivel >= 5, en el orden del catálogo"""
    rewards = []
    for skill in SKILL_KEYS:
        state = user.skills.get(skill)
        if state is None or state.level < MILESTONE_STEP:
            continue
        reached = milestone_level(state.level)
        rewards.append(Milestone(
            skill=skill,
            level=reached,
            label=f"Level {reached} {skill_display_name(skill)} Master!",
            earned=state.level >= reached,
        ))
    return rewards
