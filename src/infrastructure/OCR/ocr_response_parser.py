# src/infrastructure/OCR/ocr_response_parser.py
"""
Parseo de la respuesta de texto libre del modelo de visión.

El modelo no garantiza formato exacto: puede envolver el JSON en comentarios,
markdown, etc. Por eso se toma el tramo entre la primera '{' y la última '}'.
Nada aquí lanza excepciones: lo irrecuperable devuelve None.
"""
import json
import logging
import math
from typing import Any, Iterable, Optional, Tuple

from src.domain.Models.detection_result import UNKNOWN_PLATE, DetectionResult, NormalizedBox

logger = logging.getLogger(__name__)

REQUIRED_FIELD = "plate_text"


def collect_text(content: Any) -> str:
    """
    Concatena el texto del mensaje. `content` puede ser un str o una lista
    de partes ({"type": "text"|"output_text", "text": ...} u objetos equivalentes).
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content.strip()

    text = ""
    if isinstance(content, Iterable):
        for part in content:
            if isinstance(part, dict):
                ptype, ptext = part.get("type"), part.get("text")
            else:
                ptype, ptext = getattr(part, "type", None), getattr(part, "text", None)
            if ptype in ("text", "output_text") and isinstance(ptext, str):
                text += ptext
    return text.strip()


def extract_json_object(text: str) -> Optional[str]:
    """Tramo desde la primera '{' hasta la última '}' (inclusive), o None."""
    if not text:
        return None
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last <= first:
        return None
    return text[first:last + 1]


def to_float(value: Any, default: float = 0.0) -> float:
    """Número finito o `default` (None, str no numérico, NaN, inf, bool...)."""
    if value is None or isinstance(value, bool):
        return default
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(f) or math.isinf(f):
        return default
    return f


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def order_box(nx1: float, ny1: float, nx2: float, ny2: float) -> Tuple[float, float, float, float]:
    """Recorta a [0,1] e intercambia pares invertidos."""
    nx1, ny1, nx2, ny2 = clamp01(nx1), clamp01(ny1), clamp01(nx2), clamp01(ny2)
    if nx2 < nx1:
        nx1, nx2 = nx2, nx1
    if ny2 < ny1:
        ny1, ny2 = ny2, ny1
    return nx1, ny1, nx2, ny2


def coerce_detection(parsed: dict) -> DetectionResult:
    plate_text = str(parsed.get("plate_text") or "").strip()
    nx1, ny1, nx2, ny2 = order_box(
        to_float(parsed.get("nx1")),
        to_float(parsed.get("ny1")),
        to_float(parsed.get("nx2")),
        to_float(parsed.get("ny2")),
    )
    return DetectionResult(
        plate_text=plate_text or UNKNOWN_PLATE,
        ocr_conf=clamp01(to_float(parsed.get("ocr_conf"))),
        box=NormalizedBox(nx1=nx1, ny1=ny1, nx2=nx2, ny2=ny2),
    )


def parse_detection(text: str) -> Optional[DetectionResult]:
    json_str = extract_json_object(text)
    if json_str is None:
        logger.warning("[PlateOCR] Sin objeto JSON en la respuesta: %r", text[:200] if text else text)
        return None

    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.warning("[PlateOCR] Error parseando JSON (%s). raw=%r", e, json_str[:200])
        return None

    if not isinstance(parsed, dict):
        logger.warning("[PlateOCR] El JSON no es un objeto: %r", json_str[:200])
        return None

    # plate_text es el único campo obligatorio; null/"" sí se acepta (-> UNKNOWN)
    if REQUIRED_FIELD not in parsed:
        logger.warning("[PlateOCR] JSON sin '%s': %r", REQUIRED_FIELD, json_str[:200])
        return None

    return coerce_detection(parsed)
