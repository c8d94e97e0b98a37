"""
=============================================================================
MODELS.PY — Tabla del Almacén y Tipos Predefinidos
=============================================================================
El motor guarda documentos JSON, así que solo hay UNA tabla:

  kv_records
  ├── namespace  → "users", "dailyQuests", "system"
  ├── key        → userId o nombre de la clave de sistema
  ├── value      → el documento (User, QuestSet...) serializado
  └── updated_at

Los enums fijan las 8 habilidades y los tipos de entrada del diario.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from database import Base
import enum


# =============================================================================
# ===================== ENUMS (Tipos predefinidos) ============================
# =============================================================================

class SkillKey(str, enum.Enum):
    """Las 8 habilidades. Todo usuario las tiene desde que se crea."""
    communication = "communication"
    leadership = "leadership"
    creativity = "creativity"
    fitness = "fitness"
    learning = "learning"
    productivity = "productivity"
    emotional_intelligence = "emotional_intelligence"
    financial = "financial"

class EntryType(str, enum.Enum):
    """Origen de una entrada del diario"""
    text = "text"      # Escrita directamente
    audio = "audio"    # Transcrita antes de llegar al motor


SKILL_KEYS = [skill.value for skill in SkillKey]


# =============================================================================
# ===================== TABLA: KV_RECORDS =====================================
# =============================================================================

class KeyValueRecord(Base):
    __tablename__ = "kv_records"
    __table_args__ = (
        UniqueConstraint("namespace", "key", name="uq_kv_namespace_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    namespace = Column(String(50), nullable=False, index=True)
    key = Column(String(255), nullable=False)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow)
