"""
=============================================================================
CLASSIFICATION.PY — Clasificación de Entradas por Habilidad
=============================================================================
¿Qué hace?
Recibe el texto de una entrada del diario y devuelve
{habilidad: confianza 0-100}.

Dos clasificadores:
  - HuggingFaceClassifier → zero-shot (facebook/bart-large-mnli) vía la
    Inference API. Si falla → UpstreamUnavailable.
  - KeywordClassifier → cuenta palabras clave. No falla nunca.

analyze_entry() usa el primero y, si el servicio cae, el segundo. Así
el diario sigue funcionando (como mínimo da XP por longitud).
"""

import os
import logging
from typing import Optional, Protocol

import requests

from models import SKILL_KEYS
from exceptions import UpstreamUnavailable, ValidationError

logger = logging.getLogger("skilljournal.classification")

MIN_ENTRY_LENGTH = 10
MAX_ENTRY_LENGTH = 5000

# Confianza mínima (0-1) para que una etiqueta del modelo cuente
MODEL_SCORE_THRESHOLD = 0.3

HF_API_URL = "https://api-inference.huggingface.co/models/{model}"
DEFAULT_MODEL = "facebook/bart-large-mnli"
HYPOTHESIS_TEMPLATE = "This text is about {}."


def validate_entry_text(text: Optional[str]) -> str:
    """Valida la longitud del texto (sin espacios a los lados) y lo retorna"""
    if not isinstance(text, str):
        raise ValidationError("Journal entry must be text")
    trimmed = text.strip()
    if len(trimmed) < MIN_ENTRY_LENGTH:
        raise ValidationError(
            f"Journal entry must be at least {MIN_ENTRY_LENGTH} characters long",
            {"length": len(trimmed)},
        )
    if len(trimmed) > MAX_ENTRY_LENGTH:
        raise ValidationError(
            f"Journal entry must be at most {MAX_ENTRY_LENGTH} characters long",
            {"length": len(trimmed)},
        )
    return text


class Classifier(Protocol):
    def classify(self, text: str) -> dict[str, int]: ...


# =============================================================================
# ===================== CLASIFICADOR POR PALABRAS CLAVE =======================
# =============================================================================

KEYWORD_PATTERNS = {
    "communication": [
        "talk", "speak", "conversation", "discuss", "presentation", "meeting",
        "email", "message", "write", "writing", "communicate", "explain",
    ],
    "leadership": [
        "lead", "manage", "team", "project", "decision", "mentor", "guide",
        "initiative", "responsibility", "coordinate", "organize",
    ],
    "creativity": [
        "create", "design", "art", "draw", "paint", "write", "compose",
        "innovate", "brainstorm", "idea", "creative", "imagine",
    ],
    "fitness": [
        "exercise", "workout", "run", "gym", "sport", "train", "fitness",
        "health", "nutrition", "diet", "strength", "cardio",
    ],
    "learning": [
        "learn", "study", "read", "research", "course", "education",
        "knowledge", "skill", "practice", "understand", "explore",
    ],
    "productivity": [
        "complete", "task", "finish", "organize", "plan", "schedule",
        "efficient", "productive", "work", "focus", "deadline",
    ],
    "emotional_intelligence": [
        "feel", "emotion", "mindful", "meditate", "reflect", "empathy",
        "relationship", "understand", "aware", "calm", "stress",
    ],
    "financial": [
        "money", "budget", "save", "invest", "finance", "expense",
        "income", "spend", "cost", "financial", "economy",
    ],
}

KEYWORD_CONFIDENCE_STEP = 25


class KeywordClassifier:
    """Confianza = 25 por palabra clave encontrada (máx. 100)"""

    def classify(self, text: str) -> dict[str, int]:
        lower_text = text.lower()
        results = {}
        for skill, keywords in KEYWORD_PATTERNS.items():
            matches = sum(1 for keyword in keywords if keyword in lower_text)
            if matches > 0:
                results[skill] = min(100, matches * KEYWORD_CONFIDENCE_STEP)
        return results


# =============================================================================
# ===================== CLASIFICADOR HUGGING FACE =============================
# =============================================================================

class HuggingFaceClassifier:
    """
    Zero-shot sobre las 8 habilidades.

    La API responde {"labels": [...], "scores": [...]} ordenado de mayor a
    menor. Se quedan las etiquetas con score >= 0.3 (en escala 0-100);
    si ninguna llega, se queda la mejor.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def classify(self, text: str) -> dict[str, int]:
        try:
            response = self.session.post(
                HF_API_URL.format(model=self.model),
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "inputs": text,
                    "parameters": {
                        "candidate_labels": SKILL_KEYS,
                        "hypothesis_template": HYPOTHESIS_TEMPLATE,
                    },
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise UpstreamUnavailable(f"Classifier request failed: {e}", {"model": self.model}) from e

        return self._parse(payload)

    def _parse(self, payload) -> dict[str, int]:
        # Algunas versiones de la API devuelven una lista por cada input
        if isinstance(payload, list) and payload:
            payload = payload[0]
        if not isinstance(payload, dict) or "labels" not in payload or "scores" not in payload:
            raise UpstreamUnavailable("Unexpected classifier response", {"model": self.model})

        pairs = list(zip(payload["labels"], payload["scores"]))
        results = {
            label: round(score * 100)
            for label, score in pairs
            if score >= MODEL_SCORE_THRESHOLD
        }
        if not results and pairs:
            label, score = max(pairs, key=lambda pair: pair[1])
            results[label] = round(score * 100)
        return results


def classifier_from_env() -> Optional[HuggingFaceClassifier]:
    """Clasificador configurado por variables de entorno (None si no hay API key)"""
    api_key = os.getenv("HUGGINGFACE_API_KEY")
    if not api_key:
        return None
    return HuggingFaceClassifier(
        api_key=api_key,
        model=os.getenv("CLASSIFIER_MODEL", DEFAULT_MODEL),
        timeout=float(os.getenv("CLASSIFIER_TIMEOUT", "10")),
    )


# =============================================================================
# ===================== ANÁLISIS CON RESPALDO =================================
# =============================================================================

def analyze_entry(
    text: str,
    classifier: Optional[Classifier] = None,
    fallback: Optional[Classifier] = None,
) -> dict[str, int]:
    """
    Clasifica el texto sin dejar caer el envío de la entrada.

      - Texto < 10 caracteres → {} sin llamar a nadie
      - Sin clasificador principal → se usa el de respaldo
      - El principal falla → aviso en el log + respaldo (o {} si no hay)
    """
    if not text or len(text.strip()) < MIN_ENTRY_LENGTH:
        return {}

    primary = classifier or fallback
    if primary is None:
        return {}

    try:
        return primary.classify(text)
    except UpstreamUnavailable as e:
        if fallback is None or primary is fallback:
            logger.warning(f"⚠️ Clasificador no disponible, análisis vacío: {e}")
            return {}
        logger.warning(f"⚠️ Clasificador no disponible, usando palabras clave: {e}")
        return fallback.classify(text)
