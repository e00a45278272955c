from src.core.config import settings
from src.domain.Interfaces.ocr_reader import IPlateOCR

def create_plate_ocr() -> IPlateOCR:
    if settings.ocr_backend.lower() == "dummy":
        from src.infrastructure.OCR.dummy_ocr_reader import DummyPlateOCR
        return DummyPlateOCR()
    else:
        # Implementación real (Groq vision)
        from src.infrastructure.OCR.groq_plate_reader import GroqPlateOCR
        return GroqPlateOCR()
