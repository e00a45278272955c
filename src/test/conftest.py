import pytest

from src.infrastructure.Database.session import Database
from src.test.fakes import RecordingPublisher, make_image

MEMORY_DB = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def jpeg_800x600() -> bytes:
    return make_image(800, 600)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
async def database():
    db = Database(url=MEMORY_DB, fallback_url=MEMORY_DB, echo=False)
    await db.connect()
    await db.create_all()
    yield db
    await db.dispose()
