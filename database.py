"""
=============================================================================
DATABASE.PY — Conexión y Almacén Clave-Valor
=============================================================================
Este archivo configura la conexión a la base de datos y expone el
almacén clave-valor que usa el motor de progresión.

En DESARROLLO (tu PC): usa SQLite (un archivo .db)
En PRODUCCIÓN: usa PostgreSQL (variable de entorno DATABASE_URL)

El motor NO conoce tablas ni consultas: solo pide y guarda documentos
JSON por (namespace, key). Namespaces usados:
  users[userId]           → perfil completo del usuario
  dailyQuests[userId]     → {date, quests[]} del día
  system[lastQuestReset]  → último borrado global de misiones

No hay engine global: cada app (o cada test) construye su propio
KeyValueStore y se lo pasa al motor.
"""

import os
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import create_engine, select, delete, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.pool import StaticPool

logger = logging.getLogger("skilljournal.database")

# ─────────────────────────────────────────────────────────────────────────────
# CONEXIÓN
# ─────────────────────────────────────────────────────────────────────────────

DEFAULT_DATABASE_URL = "sqlite:///./skilljournal.db"


def resolve_database_url(url: Optional[str] = None) -> str:
    """
    Devuelve la URL final de la BD.

    PostgreSQL suele llegar como "postgres://", pero SQLAlchemy con
    psycopg (v3) necesita "postgresql+psycopg://".
    """
    url = url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def create_db_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Crea el engine de SQLAlchemy.

    connect_args={"check_same_thread": False} → solo para SQLite, que por
    defecto no permite compartir la conexión entre hilos.
    Para "sqlite://" (memoria) se usa StaticPool: todas las sesiones ven
    la misma BD en memoria.
    """
    url = resolve_database_url(url)
    engine_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        engine_args["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine_args["poolclass"] = StaticPool
    return create_engine(url, echo=echo, **engine_args)


# ─────────────────────────────────────────────────────────────────────────────
# BASE (Clase base para los modelos)
# ─────────────────────────────────────────────────────────────────────────────

Base = declarative_base()


def init_db(engine: Engine):
    """Crea las tablas si no existen. Se llama una vez al arrancar."""
    # Importar models registra las tablas en Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


# =============================================================================
# ===================== ALMACÉN CLAVE-VALOR ===================================
# =============================================================================

class KeyValueStore:
    """
    Almacén de documentos JSON indexados por (namespace, key).

    Cada operación abre su propia sesión y hace commit al terminar.
    put_many escribe varias claves en UNA transacción: o se guardan todas
    o ninguna.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "KeyValueStore":
        """Crea engine + tablas + store en un paso"""
        engine = create_db_engine(url)
        init_db(engine)
        logger.info(f"✅ Almacén inicializado ({engine.url.drivername})")
        return cls(sessionmaker(autocommit=False, autoflush=False, bind=engine))

    @contextmanager
    def session(self):
        """Sesión con commit al salir y rollback si algo falla"""
        db: Session = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ── Lectura ──

    def get(self, namespace: str, key: str, default: Any = None) -> Any:
        from models import KeyValueRecord

        with self.session() as db:
            record = db.execute(
                select(KeyValueRecord).where(
                    KeyValueRecord.namespace == namespace,
                    KeyValueRecord.key == key,
                )
            ).scalar_one_or_none()
            return record.value if record else default

    def items(self, namespace: str) -> dict[str, Any]:
        """Todas las claves de un namespace → {key: value}"""
        from models import KeyValueRecord

        with self.session() as db:
            rows = db.execute(
                select(KeyValueRecord).where(KeyValueRecord.namespace == namespace)
            ).scalars().all()
            return {row.key: row.value for row in rows}

    def count(self, namespace: str) -> int:
        from models import KeyValueRecord

        with self.session() as db:
            return db.execute(
                select(func.count()).select_from(KeyValueRecord).where(
                    KeyValueRecord.namespace == namespace
                )
            ).scalar_one()

    # ── Escritura ──

    def put(self, namespace: str, key: str, value: Any):
        self.put_many([(namespace, key, value)])

    def put_many(self, entries: Iterable[tuple[str, str, Any]]):
        """Guarda varias claves en una sola transacción"""
        with self.session() as db:
            for namespace, key, value in entries:
                self._upsert(db, namespace, key, value)

    def delete(self, namespace: str, key: str) -> bool:
        from models import KeyValueRecord

        with self.session() as db:
            result = db.execute(
                delete(KeyValueRecord).where(
                    KeyValueRecord.namespace == namespace,
                    KeyValueRecord.key == key,
                )
            )
            return result.rowcount > 0

    def clear(self, namespace: str, extra: Iterable[tuple[str, str, Any]] = ()) -> int:
        """
        Borra un namespace entero. `extra` se escribe en la misma
        transacción (p. ej. la marca de tiempo del borrado).
        """
        from models import KeyValueRecord

        extra = list(extra)
        with self.session() as db:
            result = db.execute(
                delete(KeyValueRecord).where(KeyValueRecord.namespace == namespace)
            )
            for ns, key, value in extra:
                self._upsert(db, ns, key, value)
            return result.rowcount

    @staticmethod
    def _upsert(db: Session, namespace: str, key: str, value: Any):
        from models import KeyValueRecord

        record = db.execute(
            select(KeyValueRecord).where(
                KeyValueRecord.namespace == namespace,
                KeyValueRecord.key == key,
            )
        ).scalar_one_or_none()
        if record:
            record.value = value
            record.updated_at = datetime.utcnow()
        else:
            db.add(KeyValueRecord(
                namespace=namespace, key=key, value=value, updated_at=datetime.utcnow()
            ))
