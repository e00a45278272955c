# src/domain/Models/gate_state.py
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from src.domain.Models.vehicle import VehicleSummary


class GatePhase(str, Enum):
    IDLE = "idle"
    PRESENT_UNKNOWN = "present_unknown"
    PRESENT_REGISTERED = "present_registered"
    PRESENT_UNREGISTERED = "present_unregistered"


@dataclass(frozen=True)
class GateState:
    """
    Foto actual del gate: ¿hay vehículo?, ¿qué placa?, ¿está registrado?

    Se construye solo con los constructores estáticos, que garantizan:
    - registered=True  => plate no es None
    - sensor_present=False => plate=None y registered=False
    """
    phase: GatePhase
    sensor_present: bool
    plate: Optional[str] = None
    registered: bool = False
    vehicle: Optional[VehicleSummary] = None
    driver_name: Optional[str] = None
    detections: List[dict] = field(default_factory=list)
    image_width: int = 0
    image_height: int = 0
    last_update: Optional[float] = None   # epoch en segundos de la última transición

    # ---------------------------------------------------------
    #  CONSTRUCTORES
    # ---------------------------------------------------------
    @staticmethod
    def idle(now: Optional[float] = None) -> "GateState":
        return GateState(phase=GatePhase.IDLE, sensor_present=False, last_update=now)

    @staticmethod
    def present_unknown(now: float) -> "GateState":
        return GateState(phase=GatePhase.PRESENT_UNKNOWN, sensor_present=True, last_update=now)

    @staticmethod
    def present_registered(
        now: float,
        plate: str,
        vehicle: Optional[VehicleSummary],
        driver_name: Optional[str],
        detections: List[dict],
        image_width: int,
        image_height: int,
    ) -> "GateState":
        if not plate:
            raise ValueError("registered gate state requires a plate")
        return GateState(
            phase=GatePhase.PRESENT_REGISTERED,
            sensor_present=True,
            plate=plate,
            registered=True,
            vehicle=vehicle,
            driver_name=driver_name,
            detections=list(detections),
            image_width=image_width,
            image_height=image_height,
            last_update=now,
        )

    @staticmethod
    def present_unregistered(
        now: float,
        plate: Optional[str],
        detections: List[dict],
        image_width: int,
        image_height: int,
    ) -> "GateState":
        return GateState(
            phase=GatePhase.PRESENT_UNREGISTERED,
            sensor_present=True,
            plate=plate,
            registered=False,
            detections=list(detections),
            image_width=image_width,
            image_height=image_height,
            last_update=now,
        )

    # ---------------------------------------------------------
    #  SERIALIZACIÓN
    # ---------------------------------------------------------
    @property
    def last_update_ms(self) -> Optional[int]:
        return int(self.last_update * 1000) if self.last_update is not None else None

    def to_payload(self) -> dict:
        """Payload completo del evento gate-update."""
        return {
            "phase": self.phase.value,
            "sensor": self.sensor_present,
            "plate": self.plate,
            "registered": self.registered,
            "vehicle": self.vehicle.to_dict() if self.vehicle else None,
            "driver": self.driver_name,
            "detections": list(self.detections),
            "imageWidth": self.image_width,
            "imageHeight": self.image_height,
            "lastUpdate": self.last_update_ms,
        }

    def to_sensor_echo(self) -> dict:
        return {
            "plate": self.plate,
            "registered": self.registered,
            "sensor": self.sensor_present,
            "lastUpdate": self.last_update_ms,
        }
