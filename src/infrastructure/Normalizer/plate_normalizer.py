# src/infrastructure/Normalizer/plate_normalizer.py
import re
from src.domain.Interfaces.text_normalizer import ITextNormalizer


class PlateNormalizer(ITextNormalizer):
    """
    Normaliza texto de placas para la búsqueda en el registro:
    - Mayúsculas
    - Quitar espacios (cualquier whitespace) y guiones

    Debe coincidir con la normalización que el registro aplica en SQL
    sobre la placa almacenada (UPPER + REPLACE de ' ' y '-').
    """
    _SEPARATORS = re.compile(r"[\s\-]+")

    def normalize(self, text: str) -> str:
        if not text:
            return ""
        return self._SEPARATORS.sub("", text).upper()
