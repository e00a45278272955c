from src.domain.Models.credential import Credential
from src.domain.Models.detection_result import DetectionResult, NormalizedBox
from src.domain.Models.ocr_outcome import OcrOutcome
from src.domain.Interfaces.ocr_reader import IPlateOCR

class DummyPlateOCR(IPlateOCR):
    """
    Implementación dummy que simplemente devuelve la misma placa fija.
    Útil en desarrollo sin API keys reales.
    """

    def __init__(self, plate_text: str = "FAKE123"):
        self.plate_text = plate_text

    async def detect_plate(self, credential: Credential, image_bytes: bytes, content_type: str) -> OcrOutcome:
        result = DetectionResult(
            plate_text=self.plate_text,
            ocr_conf=0.99,
            box=NormalizedBox(nx1=0.4, ny1=0.6, nx2=0.6, ny2=0.7),
        )
        return OcrOutcome.from_result(result)
