from abc import ABC, abstractmethod
from src.domain.Models.credential import Credential
from src.domain.Models.ocr_outcome import OcrOutcome

class IPlateOCR(ABC):
    """
    Lector OCR remoto: una imagen completa -> placa + caja normalizada.
    """
    @abstractmethod
    async def detect_plate(self, credential: Credential, image_bytes: bytes, content_type: str) -> OcrOutcome:
        """
        Ejecuta UN intento con la credencial dada.
        Nunca lanza por fallos del proveedor: los devuelve como TRANSIENT_FAILURE.
        """
        pass

    async def close(self) -> None:
        return None
