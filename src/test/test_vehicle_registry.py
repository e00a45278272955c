import pytest

from src.infrastructure.Database.entities.driver_entity import DriverEntity
from src.infrastructure.Database.entities.vehicle_entity import VehicleEntity
from src.infrastructure.Normalizer.plate_normalizer import PlateNormalizer
from src.infrastructure.Registry.vehicle_registry import SqlVehicleRegistry


@pytest.fixture
async def registry(database):
    async with database.session_factory() as session:
        async with session.begin():
            driver = DriverEntity(full_name="Maria Santos")
            session.add(driver)
            await session.flush()
            session.add(VehicleEntity(plate_number="NBC1234", brand="Toyota", model="Vios",
                                      type="Sedan", driver_id=driver.id))
            session.add(VehicleEntity(plate_number="xy-98 76", brand="Honda", model="Click", type="Motorcycle"))
            session.add(VehicleEntity(plate_number="OLD0001", brand="Ford", active=False))
    return SqlVehicleRegistry(database.session_factory)


@pytest.mark.parametrize("raw", ["NBC 1234", "NBC-1234", "nbc1234", " nbc - 1234 "])
async def test_plate_lookup_ignores_spacing_hyphens_and_case(registry, raw):
    record = await registry.find_active_by_plate(PlateNormalizer().normalize(raw))
    assert record is not None
    assert record.plate_number == "NBC1234"
    assert record.summary.to_dict() == {"brand": "Toyota", "model": "Vios", "type": "Sedan"}
    assert record.driver_name == "Maria Santos"


async def test_stored_plate_is_normalized_too(registry):
    record = await registry.find_active_by_plate("XY9876")
    assert record is not None
    assert record.driver_name is None


async def test_inactive_or_unknown_plates_do_not_match(registry):
    assert await registry.find_active_by_plate("OLD0001") is None
    assert await registry.find_active_by_plate("ZZZ999") is None
    assert await registry.find_active_by_plate("") is None


def test_normalizer():
    n = PlateNormalizer()
    assert n.normalize("abc\t12-3") == "ABC123"
    assert n.normalize("") == ""
