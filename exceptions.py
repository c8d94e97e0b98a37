"""
=============================================================================
EXCEPTIONS.PY — Errores del Dominio
=============================================================================
  NotFoundError               → usuario / misión / habilidad desconocida (404)
  QuestAlreadyCompletedError  → la misión ya estaba completada (400)
  ValidationError             → texto demasiado corto o largo (400)
  UpstreamUnavailable         → fallo del clasificador o transcripción (503)
  InvariantViolation          → el libro de XP quedó inconsistente (500)

main.py traduce cualquier SkillJournalError a una respuesta JSON con
su status_code.
"""

from typing import Any, Optional


class SkillJournalError(Exception):
    """Base de todos los errores del dominio"""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "type": self.__class__.__name__,
            **({"details": self.details} if self.details else {}),
        }

    def __str__(self) -> str:
        details = f" | {self.details}" if self.details else ""
        return f"{self.message}{details}"


class NotFoundError(SkillJournalError):
    status_code = 404


class QuestAlreadyCompletedError(NotFoundError):
    """Una misión solo se completa una vez; el segundo intento se rechaza"""
    status_code = 400


class ValidationError(SkillJournalError):
    status_code = 400


class UpstreamUnavailable(SkillJournalError):
    status_code = 503


class InvariantViolation(SkillJournalError):
    """No debería ocurrir nunca: indica un bug en apply_xp"""
    status_code = 500
