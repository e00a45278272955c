from typing import Protocol

class ITextNormalizer(Protocol):
    """Normaliza texto de placas para comparar lecturas OCR con el registro."""
    def normalize(self, text: str) -> str: ...
