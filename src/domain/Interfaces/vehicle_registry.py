from typing import Optional, Protocol
from src.domain.Models.vehicle import VehicleRecord

class IVehicleRegistry(Protocol):
    """
    Contrato del registro de vehículos (solo lectura).

    `normalized_plate` ya viene en mayúsculas y sin espacios ni guiones;
    la implementación aplica la misma normalización a la placa almacenada.
    """
    async def find_active_by_plate(self, normalized_plate: str) -> Optional[VehicleRecord]:
        ...
