# src/domain/Models/detection_result.py
from dataclasses import dataclass, field
from typing import List, Optional

UNKNOWN_PLATE = "UNKNOWN"


@dataclass(frozen=True)
class NormalizedBox:
    """
    Caja en fracciones (0..1) del ancho/alto de la imagen.
    Siempre llega ya recortada a [0,1] y ordenada (nx1<=nx2, ny1<=ny2).
    """
    nx1: float
    ny1: float
    nx2: float
    ny2: float


@dataclass(frozen=True)
class DetectionResult:
    """
    Lectura de una sola llamada OCR. Efímera, nunca se persiste.
    """
    plate_text: str
    ocr_conf: float
    box: NormalizedBox

    @property
    def is_unknown(self) -> bool:
        return not self.plate_text or self.plate_text.strip().upper() == UNKNOWN_PLATE


@dataclass(frozen=True)
class PixelBox:
    """Caja en píxeles, derivada de (DetectionResult, ancho, alto)."""
    x1: float
    y1: float
    x2: float
    y2: float
    nx1: float
    ny1: float
    nx2: float
    ny2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center_x(self) -> float:
        return self.x1 + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y1 + self.height / 2

    @staticmethod
    def from_normalized(box: NormalizedBox, image_w: int, image_h: int) -> "PixelBox":
        return PixelBox(
            x1=box.nx1 * image_w,
            y1=box.ny1 * image_h,
            x2=box.nx2 * image_w,
            y2=box.ny2 * image_h,
            nx1=box.nx1,
            ny1=box.ny1,
            nx2=box.nx2,
            ny2=box.ny2,
        )

    def to_dict(self) -> dict:
        return {
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "width": self.width,
            "height": self.height,
            "cx": self.center_x,
            "cy": self.center_y,
            "nx1": self.nx1,
            "ny1": self.ny1,
            "nx2": self.nx2,
            "ny2": self.ny2,
        }


def detection_to_dict(result: DetectionResult, image_w: int, image_h: int, is_focus: bool = True) -> dict:
    """Forma pública de una detección (respuesta HTTP y payload del gate)."""
    box = PixelBox.from_normalized(result.box, image_w, image_h)
    return {
        "plate_text": result.plate_text,
        "detection_conf": result.ocr_conf,
        "ocr_conf": result.ocr_conf,
        "is_focus": is_focus,
        "box": box.to_dict(),
    }


@dataclass
class DetectionResponse:
    """
    Respuesta de /api/detect.
    """
    stream_id: Optional[str]
    image_w: int = 0
    image_h: int = 0
    focus_plate: Optional[str] = None
    detections: List[dict] = field(default_factory=list)
    busy: bool = False
    cached: bool = False

    def to_dict(self) -> dict:
        """Convierte a dict serializable."""
        out = {
            "stream_id": self.stream_id,
            "image_w": self.image_w,
            "image_h": self.image_h,
            "focus_plate": self.focus_plate,
            "detections": list(self.detections),
        }
        if self.busy:
            out["busy"] = True
        if self.cached:
            out["cached"] = True
        return out
