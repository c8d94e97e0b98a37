"""
=============================================================================
ENGINE.PY — Motor de Progresión
=============================================================================
Une las piezas de gamification.py y quests.py con el almacén:

  entrada del diario → score_entry → apply_xp por habilidad → guardar
  misión completada  → mark_completed → apply_xp(50) → guardar

Reglas:
  - Todo lo que recibe llega inyectado: almacén, azar, reloj, zona horaria.
  - Un lock por usuario: las mutaciones de un mismo usuario nunca se
    intercalan (si no, dos peticiones a la vez pueden perder XP).
  - Se trabaja sobre una COPIA del registro y se guarda todo en un solo
    commit. Si algo falla a mitad, no se guarda nada.
"""

import random
import threading
import uuid
import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

import pytz

from database import KeyValueStore
from models import SKILL_KEYS, EntryType
from schemas import (
    UserProfile, JournalEntryRecord, DailyQuestSet, Milestone,
    EntryScore, SkillXPOutcome, JournalSubmission, QuestCompletion,
)
from exceptions import NotFoundError
from gamification import (
    new_user_profile, apply_xp, check_ledger, score_entry, derive_milestones,
)
from quests import generate_daily_quests, is_current, mark_completed, local_today
from classification import validate_entry_text

logger = logging.getLogger("skilljournal.engine")

APP_VERSION = "1.0.0"

USERS = "users"
DAILY_QUESTS = "dailyQuests"
SYSTEM = "system"
LAST_QUEST_RESET = "lastQuestReset"


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


class ProgressionEngine:
    """
    Operaciones del motor sobre un KeyValueStore.

    Args:
        store: almacén clave-valor (database.KeyValueStore)
        rng: fuente de azar para las misiones
        clock: función que devuelve el "ahora" (aware, UTC)
        timezone: zona pytz que define la fecha local de las misiones
    """

    def __init__(
        self,
        store: KeyValueStore,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
        timezone: str = "UTC",
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock
        self.timezone = timezone
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._rng_guard = threading.Lock()

    # =========================================================================
    # ===================== UTILIDADES ========================================
    # =========================================================================

    def user_lock(self, user_id: str) -> threading.RLock:
        """Lock del usuario (se crea la primera vez que se pide)"""
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.RLock()
            return lock

    def existing_user_lock(self, user_id: str) -> threading.RLock:
        """Como user_lock, pero no registra locks para usuarios que no existen"""
        with self._locks_guard:
            known = user_id in self._locks
        if not known:
            self._require_user(user_id)
        return self.user_lock(user_id)

    def today(self) -> str:
        return local_today(self.timezone, self.clock())

    def _load_user(self, user_id: str) -> Optional[UserProfile]:
        data = self.store.get(USERS, user_id)
        return UserProfile.model_validate(data) if data is not None else None

    def _require_user(self, user_id: str) -> UserProfile:
        user = self._load_user(user_id)
        if user is None:
            raise NotFoundError("User not found", {"user_id": user_id})
        return user

    def _load_quests(self, user_id: str) -> Optional[DailyQuestSet]:
        data = self.store.get(DAILY_QUESTS, user_id)
        return DailyQuestSet.model_validate(data) if data is not None else None

    @staticmethod
    def _user_entry(user: UserProfile) -> tuple[str, str, dict]:
        return (USERS, user.id, user.model_dump(mode="json"))

    @staticmethod
    def _quests_entry(quest_set: DailyQuestSet) -> tuple[str, str, dict]:
        return (DAILY_QUESTS, quest_set.user_id, quest_set.model_dump(mode="json"))

    # =========================================================================
    # ===================== USUARIOS ==========================================
    # =========================================================================

    def get_user(self, user_id: str) -> UserProfile:
        return self._require_user(user_id)

    def get_or_create_user(self, user_id: str) -> UserProfile:
        with self.user_lock(user_id):
            user = self._load_user(user_id)
            if user is not None:
                return user
            user = new_user_profile(user_id, self.clock())
            self.store.put(*self._user_entry(user))
            logger.info(f"👤 Usuario creado: {user_id}")
            return user

    # =========================================================================
    # ===================== LIBRO DE HABILIDADES ==============================
    # =========================================================================

    def apply_skill_xp(self, user_id: str, skill: str, amount: int) -> SkillXPOutcome:
        """Suma XP a una habilidad del usuario y guarda el resultado"""
        with self.existing_user_lock(user_id):
            user = self._require_user(user_id)
            levels = apply_xp(user, skill, amount, self.clock())
            self.store.put(*self._user_entry(user))
            return SkillXPOutcome(
                user=user,
                leveled_up_skills=[skill] if levels else [],
                levels_gained={skill: levels} if levels else {},
            )

    # =========================================================================
    # ===================== DIARIO ============================================
    # =========================================================================

    def score_entry(self, text: str, analysis: dict[str, float]) -> EntryScore:
        return score_entry(text, analysis)

    def record_journal_entry(self, user_id: str, entry: JournalEntryRecord) -> UserProfile:
        """Añade la entrada al final del historial (solo se añaden, nunca se editan)"""
        with self.existing_user_lock(user_id):
            user = self._require_user(user_id)
            user.journal_entries.append(entry)
            user.last_active = self.clock()
            self.store.put(*self._user_entry(user))
            return user

    def submit_journal_entry(
        self,
        user_id: str,
        content: str,
        entry_type: EntryType = EntryType.text,
        analysis: Optional[dict[str, float]] = None,
    ) -> JournalSubmission:
        """
        Flujo completo de una entrada:
          1. Validar el texto
          2. Puntuar con el análisis (ya calculado fuera del motor)
          3. Aplicar la XP de cada habilidad (con subidas de nivel)
          4. Sumar el total al contador del usuario
          5. Guardar la entrada
        Todo en una sola escritura.
        """
        validate_entry_text(content)
        analysis = dict(analysis or {})
        score = score_entry(content, analysis)

        with self.existing_user_lock(user_id):
            user = self._require_user(user_id)
            now = self.clock()

            leveled_up = []
            for skill, skill_xp in score.per_skill_awards.items():
                if apply_xp(user, skill, skill_xp, now):
                    leveled_up.append(skill)

            user.total_xp += score.xp_earned
            entry = JournalEntryRecord(
                id=str(uuid.uuid4()),
                content=content,
                type=EntryType(entry_type),
                analysis=analysis,
                xp_earned=score.xp_earned,
                timestamp=now,
            )
            user.journal_entries.append(entry)
            user.last_active = now
            check_ledger(user)

            self.store.put(*self._user_entry(user))

        logger.info(f"📝 {user_id}: entrada de {len(content)} caracteres → +{score.xp_earned} XP")
        return JournalSubmission(
            entry=entry,
            analysis=analysis,
            xp_earned=score.xp_earned,
            user=user,
            leveled_up_skills=leveled_up,
        )

    def list_journal_entries(self, user_id: str, limit: int = 10, offset: int = 0) -> dict:
        """Historial paginado, de la más reciente a la más antigua"""
        user = self._require_user(user_id)
        entries = list(reversed(user.journal_entries))
        return {
            "entries": entries[offset:offset + limit],
            "total": len(entries),
            "has_more": len(entries) > offset + limit,
        }

    # =========================================================================
    # ===================== MISIONES ==========================================
    # =========================================================================

    def generate_daily_quests(
        self, user_id: str, skill_keys: Optional[Sequence[str]] = None, quest_date=None
    ) -> DailyQuestSet:
        """Genera y guarda un set nuevo (reemplaza el anterior)"""
        with self.user_lock(user_id):
            with self._rng_guard:
                quest_set = generate_daily_quests(
                    user_id,
                    SKILL_KEYS if skill_keys is None else skill_keys,
                    quest_date or self.today(),
                    self.rng,
                )
            self.store.put(*self._quests_entry(quest_set))
            logger.info(f"🎯 {user_id}: {len(quest_set.quests)} misiones para {quest_set.date}")
            return quest_set

    def get_or_regenerate_daily_quests(
        self, user_id: str, skill_keys: Optional[Sequence[str]] = None, today=None
    ) -> DailyQuestSet:
        """Set de hoy; si no hay o es de otra fecha, se genera uno nuevo"""
        today = today or self.today()
        with self.user_lock(user_id):
            quest_set = self._load_quests(user_id)
            if is_current(quest_set, today):
                return quest_set
            return self.generate_daily_quests(user_id, skill_keys, today)

    def complete_quest(self, user_id: str, quest_id: str) -> QuestCompletion:
        """
        Completa una misión de hoy y da su XP a la habilidad.
        Misión y usuario se guardan en la misma transacción.
        """
        with self.existing_user_lock(user_id):
            user = self._require_user(user_id)
            quest_set = self._load_quests(user_id)
            if not is_current(quest_set, self.today()):
                raise NotFoundError("No quests found for today", {"user_id": user_id})

            now = self.clock()
            quest = mark_completed(quest_set, quest_id, now)
            levels = apply_xp(user, quest.skill, quest.xp_reward, now)
            user.total_xp += quest.xp_reward

            self.store.put_many([self._quests_entry(quest_set), self._user_entry(user)])

        logger.info(f"🏁 {user_id}: misión completada '{quest.title}' → +{quest.xp_reward} XP {quest.skill}")
        return QuestCompletion(quest=quest, user=user, leveled_up=levels > 0)

    def reset_daily_quests(self) -> int:
        """Borra los sets de todos los usuarios (tarea de medianoche)"""
        removed = self.store.clear(
            DAILY_QUESTS,
            extra=[(SYSTEM, LAST_QUEST_RESET, self.clock().isoformat())],
        )
        logger.info(f"🌙 Misiones diarias reiniciadas ({removed} sets borrados)")
        return removed

    # =========================================================================
    # ===================== HITOS Y ESTADÍSTICAS ==============================
    # =========================================================================

    def derive_milestones(self, user_id: str) -> list[Milestone]:
        return derive_milestones(self._require_user(user_id))

    def get_system_stats(self) -> dict:
        users = self.store.items(USERS)
        total_entries = sum(len(data.get("journal_entries") or []) for data in users.values())
        return {
            "total_users": len(users),
            "total_entries": total_entries,
            "last_quest_reset": self.store.get(SYSTEM, LAST_QUEST_RESET),
            "version": APP_VERSION,
        }
