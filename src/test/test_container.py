import threading

from src.application import container as container_module
from src.application.container import build_container
from src.domain.Models.gate_state import GatePhase
from src.infrastructure.Database.session import Database
from src.test.fakes import RecordingPublisher, ScriptedOCR

MEMORY_DB = "sqlite+aiosqlite:///:memory:"


async def test_publisher_is_built_off_the_event_loop(monkeypatch):
    built = {}

    def fake_factory():
        built["thread"] = threading.current_thread()
        return RecordingPublisher()

    monkeypatch.setattr(container_module, "create_event_publisher", fake_factory)

    services = await build_container(
        database=Database(url=MEMORY_DB, fallback_url=MEMORY_DB, echo=False),
        ocr=ScriptedOCR(),
    )
    try:
        assert built["thread"] is not threading.current_thread()
        assert isinstance(services.publisher, RecordingPublisher)
        assert services.gate.snapshot().phase is GatePhase.IDLE
    finally:
        await services.close()

    assert services.publisher.closed


async def test_injected_publisher_skips_factory(monkeypatch):
    def unexpected():
        raise AssertionError("factory should not run")

    monkeypatch.setattr(container_module, "create_event_publisher", unexpected)
    publisher = RecordingPublisher()

    services = await build_container(
        database=Database(url=MEMORY_DB, fallback_url=MEMORY_DB, echo=False),
        publisher=publisher,
        ocr=ScriptedOCR(),
    )
    await services.close()

    assert services.publisher is publisher
