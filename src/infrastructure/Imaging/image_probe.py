# src/infrastructure/Imaging/image_probe.py
import io
import logging
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from src.domain.exceptions import UnreadableImage

logger = logging.getLogger(__name__)


def read_image_size(image_bytes: bytes) -> Tuple[int, int]:
    """
    Devuelve (ancho, alto) leyendo solo la cabecera de la imagen.
    PIL abre de forma perezosa: no decodifica los píxeles.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning("No se pudo leer la cabecera de la imagen: %s", e)
        raise UnreadableImage() from e

    if not width or not height:
        raise UnreadableImage()
    return int(width), int(height)
