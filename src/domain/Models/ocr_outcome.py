# src/domain/Models/ocr_outcome.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.domain.Models.detection_result import DetectionResult


class OcrOutcomeKind(str, Enum):
    SUCCESS = "success"
    NO_PLATE_VISIBLE = "no_plate_visible"
    TRANSIENT_FAILURE = "transient_failure"


@dataclass(frozen=True)
class OcrOutcome:
    """
    Resultado de UN intento OCR.

    - SUCCESS: hay placa legible.
    - NO_PLATE_VISIBLE: el modelo respondió el centinela UNKNOWN (negativo final).
    - TRANSIENT_FAILURE: rate limit, respuesta mal formada o error de transporte;
      el orquestador rota la credencial y reintenta.
    """
    kind: OcrOutcomeKind
    result: Optional[DetectionResult] = None
    reason: Optional[str] = None

    @property
    def is_final(self) -> bool:
        return self.kind is not OcrOutcomeKind.TRANSIENT_FAILURE

    @staticmethod
    def from_result(result: DetectionResult) -> "OcrOutcome":
        if result.is_unknown:
            return OcrOutcome(OcrOutcomeKind.NO_PLATE_VISIBLE, result=result)
        return OcrOutcome(OcrOutcomeKind.SUCCESS, result=result)

    @staticmethod
    def transient(reason: str) -> "OcrOutcome":
        return OcrOutcome(OcrOutcomeKind.TRANSIENT_FAILURE, reason=reason)
