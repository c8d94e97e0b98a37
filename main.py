"""
=============================================================================
MAIN.PY — La API de Skill Journal
=============================================================================
Endpoints REST sobre el motor de progresión (engine.py).

Organización por secciones:
  1. USER     → Perfil (se crea la primera vez que se pide)
  2. JOURNAL  → Enviar entrada (texto o audio ya transcrito), historial
  3. QUESTS   → Misiones del día, completar misión
  4. REWARDS  → Hitos cada 5 niveles
  5. SYSTEM   → Estadísticas y health check

La clasificación del texto ocurre AQUÍ, antes de llamar al motor: si el
clasificador falla, la entrada se puntúa con palabras clave.
"""

import os
import logging
import traceback
from datetime import datetime
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import pytz

from database import KeyValueStore
from engine import ProgressionEngine, APP_VERSION
from exceptions import SkillJournalError
from schemas import (
    JournalEntryCreate, JournalSubmission, QuestCompletion, DailyQuestSet,
    UserResponse, JournalPageResponse, RewardsResponse, SystemStatsResponse,
    HealthResponse,
)
from gamification import SKILL_CATEGORIES
from classification import (
    KeywordClassifier, classifier_from_env, analyze_entry, validate_entry_text,
)
from scheduler import create_scheduler, start_scheduler, stop_scheduler

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("skilljournal.api")


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ─────────────────────────────────────────────────────────────────────────────
# APLICACIÓN FASTAPI
# ─────────────────────────────────────────────────────────────────────────────

def create_app(
    engine: Optional[ProgressionEngine] = None,
    classifier=None,
    enable_scheduler: Optional[bool] = None,
) -> FastAPI:
    """
    Construye la app. Sin argumentos lee todo del entorno (DATABASE_URL,
    APP_TIMEZONE, HUGGINGFACE_API_KEY, ENABLE_SCHEDULER). Los tests pasan
    su propio motor y desactivan el scheduler.
    """
    timezone = os.getenv("APP_TIMEZONE", "UTC")
    if enable_scheduler is None:
        enable_scheduler = _env_flag("ENABLE_SCHEDULER")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Arranque:
          1. Crear el almacén y el motor (si no vienen dados)
          2. Arrancar el scheduler de medianoche
        Apagado:
          - Parar el scheduler
        """
        logger.info("🚀 Arrancando Skill Journal...")

        if app.state.engine is None:
            store = KeyValueStore.from_url()
            app.state.engine = ProgressionEngine(store, timezone=timezone)

        scheduler = None
        if enable_scheduler:
            scheduler = create_scheduler(app.state.engine, timezone)
            start_scheduler(scheduler)

        logger.info("🎉 Skill Journal operativo")
        yield

        logger.info("🛑 Apagando Skill Journal...")
        stop_scheduler(scheduler)

    app = FastAPI(
        title="Skill Journal API",
        description="Diario con progresión de habilidades estilo RPG",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.classifier = classifier if classifier is not None else classifier_from_env()
    app.state.fallback_classifier = KeywordClassifier()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Errores del dominio → status_code de cada excepción ──

    @app.exception_handler(SkillJournalError)
    async def domain_exception_handler(request: Request, exc: SkillJournalError):
        if exc.status_code >= 500:
            logger.error(f"❌ {type(exc).__name__} en {request.url}: {exc}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Captura errores no manejados y devuelve detalles útiles"""
        logger.error(f"❌ Error no manejado en {request.url}: {exc}\n{traceback.format_exc()}")
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc), "type": type(exc).__name__, "path": str(request.url)},
        )

    _register_routes(app)
    return app


def get_engine(request: Request) -> ProgressionEngine:
    return request.app.state.engine


# =============================================================================
# ===================== ENDPOINTS =============================================
# =============================================================================

def _register_routes(app: FastAPI):

    # ── 1. USER ──

    @app.get("/api/user/{user_id}", response_model=UserResponse, tags=["Users"])
    def get_user_profile(user_id: str, engine: ProgressionEngine = Depends(get_engine)):
        """Perfil del usuario (se crea si no existe) + catálogo de habilidades"""
        user = engine.get_or_create_user(user_id)
        return {"user": user, "categories": SKILL_CATEGORIES}

    # ── 2. JOURNAL ──

    @app.post("/api/journal/{user_id}", response_model=JournalSubmission, tags=["Journal"])
    def submit_journal_entry(
        user_id: str,
        data: JournalEntryCreate,
        request: Request,
        engine: ProgressionEngine = Depends(get_engine),
    ):
        """Envía una entrada; la clasifica y reparte XP entre habilidades"""
        engine.get_user(user_id)
        validate_entry_text(data.content)
        analysis = analyze_entry(
            data.content,
            request.app.state.classifier,
            fallback=request.app.state.fallback_classifier,
        )
        return engine.submit_journal_entry(user_id, data.content, data.type, analysis)

    @app.get("/api/journal/{user_id}", response_model=JournalPageResponse, tags=["Journal"])
    def list_journal(
        user_id: str,
        limit: int = Query(default=10, ge=1, le=100),
        offset: int = Query(default=0, ge=0),
        engine: ProgressionEngine = Depends(get_engine),
    ):
        """Historial del diario (más reciente primero)"""
        return engine.list_journal_entries(user_id, limit=limit, offset=offset)

    # ── 3. QUESTS ──

    @app.get("/api/quests/{user_id}", response_model=DailyQuestSet, tags=["Quests"])
    def get_daily_quests(user_id: str, engine: ProgressionEngine = Depends(get_engine)):
        """Misiones de hoy (se generan si no hay set para la fecha actual)"""
        user = engine.get_or_create_user(user_id)
        return engine.get_or_regenerate_daily_quests(user_id, list(user.skills))

    @app.post(
        "/api/quests/{user_id}/complete/{quest_id}",
        response_model=QuestCompletion,
        tags=["Quests"],
    )
    def complete_quest(user_id: str, quest_id: str, engine: ProgressionEngine = Depends(get_engine)):
        return engine.complete_quest(user_id, quest_id)

    # ── 4. REWARDS ──

    @app.get("/api/rewards/{user_id}", response_model=RewardsResponse, tags=["Rewards"])
    def get_rewards(user_id: str, engine: ProgressionEngine = Depends(get_engine)):
        return {"rewards": engine.derive_milestones(user_id)}

    # ── 5. SYSTEM ──

    @app.get("/api/stats", response_model=SystemStatsResponse, tags=["System"])
    def get_stats(engine: ProgressionEngine = Depends(get_engine)):
        return engine.get_system_stats()

    @app.get("/api/health", response_model=HealthResponse, tags=["System"])
    def health():
        return {"status": "healthy", "timestamp": datetime.now(pytz.utc), "version": APP_VERSION}


app = create_app()
