from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class VehicleSummary:
    brand: Optional[str] = None
    model: Optional[str] = None
    type: Optional[str] = None

    def to_dict(self) -> dict:
        return {"brand": self.brand, "model": self.model, "type": self.type}


@dataclass(frozen=True)
class VehicleRecord:
    """
    Vehículo activo del registro (solo lectura para el núcleo).
    """
    plate_number: str
    summary: VehicleSummary
    driver_name: Optional[str] = None
