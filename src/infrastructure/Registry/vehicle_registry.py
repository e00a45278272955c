# src/infrastructure/Registry/vehicle_registry.py
import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domain.Interfaces.vehicle_registry import IVehicleRegistry
from src.domain.Models.vehicle import VehicleRecord, VehicleSummary
from src.infrastructure.Database.entities.driver_entity import DriverEntity
from src.infrastructure.Database.entities.vehicle_entity import VehicleEntity

logger = logging.getLogger(__name__)


def _normalized_plate_column():
    # UPPER(REPLACE(REPLACE(plate_number, ' ', ''), '-', ''))
    return func.upper(func.replace(func.replace(VehicleEntity.plate_number, " ", ""), "-", ""))


class SqlVehicleRegistry(IVehicleRegistry):
    """Búsqueda placa -> vehículo activo (+ nombre del conductor)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def find_active_by_plate(self, normalized_plate: str) -> Optional[VehicleRecord]:
        if not normalized_plate:
            return None

        stmt = (
            select(VehicleEntity, DriverEntity.full_name)
            .outerjoin(DriverEntity, DriverEntity.id == VehicleEntity.driver_id)
            .where(VehicleEntity.active.is_(True))
            .where(_normalized_plate_column() == normalized_plate)
            .order_by(VehicleEntity.id.asc())
            .limit(1)
        )
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).first()

        if row is None:
            logger.debug("Placa %s no registrada", normalized_plate)
            return None

        vehicle, driver_name = row
        return VehicleRecord(
            plate_number=vehicle.plate_number,
            summary=VehicleSummary(brand=vehicle.brand, model=vehicle.model, type=vehicle.type),
            driver_name=driver_name,
        )
