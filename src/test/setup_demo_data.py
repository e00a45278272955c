import asyncio
import os

from sqlalchemy import select

from src.domain.Models.credential import Credential
from src.infrastructure.Credentials.credential_repository import SqlCredentialRepository
from src.infrastructure.Database.entities.driver_entity import DriverEntity
from src.infrastructure.Database.entities.vehicle_entity import VehicleEntity
from src.infrastructure.Database.session import Database

DEMO_PLATE = "NBC-1234"


async def main():
    db = Database()
    await db.connect()
    await db.create_all()

    # GROQ_API_KEYS=key1,key2,...
    repo = SqlCredentialRepository(db.session_factory)
    keys = [k.strip() for k in os.getenv("GROQ_API_KEYS", "").split(",") if k.strip()]
    for i, key in enumerate(keys, start=1):
        await repo.save(Credential(identifier=f"demo-{i}@gate.local", secret_key=key, display_name=f"Demo key {i}"))

    async with db.session_factory() as session:
        async with session.begin():
            exists = (
                await session.execute(select(VehicleEntity).filter_by(plate_number=DEMO_PLATE))
            ).scalars().first()
            if exists is None:
                driver = DriverEntity(full_name="Juan Dela Cruz", contact_number="09171234567")
                session.add(driver)
                await session.flush()
                session.add(VehicleEntity(
                    plate_number=DEMO_PLATE, brand="Toyota", model="Vios", type="Sedan", driver_id=driver.id,
                ))

    await db.dispose()
    print(f"{len(keys)} API keys y el vehículo demo {DEMO_PLATE} cargados en la DB 🚗")


if __name__ == "__main__":
    asyncio.run(main())
