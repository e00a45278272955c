import asyncio

import pytest

from src.application.detection_orchestrator import DetectionOrchestrator
from src.domain.exceptions import InternalDetectionError, InvalidImage, NoActiveCredential, UnreadableImage
from src.domain.Models.gate_state import GatePhase
from src.domain.Models.ocr_outcome import OcrOutcome
from src.domain.Models.vehicle import VehicleRecord, VehicleSummary
from src.domain.Services.gate_state_machine import GateStateMachine
from src.infrastructure.Normalizer.plate_normalizer import PlateNormalizer
from src.test.fakes import (
    BlockingOCR,
    FailingOCR,
    FakeRegistry,
    FakeRotator,
    ScriptedOCR,
    make_image,
    plate,
)

UNKNOWN = plate("UNKNOWN", conf=0.0, box=(0, 0, 0, 0))
RATE_LIMITED = OcrOutcome.transient("rate_limited")


@pytest.fixture
async def gate(publisher):
    machine = GateStateMachine(publisher, dwell_seconds=5, reset_timeout_seconds=60)
    yield machine
    await machine.close()


def build(gate, ocr=None, rotator=None, registry=None, max_concurrent=1):
    return DetectionOrchestrator(
        rotator=rotator or FakeRotator(),
        ocr=ocr or ScriptedOCR(),
        registry=registry or FakeRegistry(),
        gate=gate,
        normalizer=PlateNormalizer(),
        max_concurrent=max_concurrent,
        max_attempts=3,
        max_image_bytes=4 * 1024 * 1024,
    )


async def test_scenario_a_pixel_geometry(gate, jpeg_800x600):
    await gate.report_sensor(True)
    orchestrator = build(gate, ocr=ScriptedOCR(plate("ABC1234", 0.9, (0.1, 0.2, 0.3, 0.4))))

    response = await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")

    assert (response.image_w, response.image_h) == (800, 600)
    assert response.focus_plate == "ABC1234"
    detection = response.detections[0]
    assert detection["is_focus"] is True
    assert detection["ocr_conf"] == pytest.approx(0.9)
    box = detection["box"]
    assert box["x1"] == pytest.approx(80)
    assert box["y1"] == pytest.approx(120)
    assert box["x2"] == pytest.approx(240)
    assert box["y2"] == pytest.approx(240)
    assert box["width"] == pytest.approx(160)
    assert box["height"] == pytest.approx(120)
    assert (box["cx"], box["cy"]) == (pytest.approx(160), pytest.approx(180))
    assert box["nx1"] == pytest.approx(0.1)


async def test_scenario_b_unknown_is_not_retried(gate, publisher, jpeg_800x600):
    await gate.report_sensor(True)
    rotator, ocr, registry = FakeRotator(), ScriptedOCR(UNKNOWN), FakeRegistry()
    orchestrator = build(gate, ocr=ocr, rotator=rotator, registry=registry)

    response = await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")

    assert response.focus_plate is None
    assert response.detections == []
    assert len(ocr.calls) == 1 and len(rotator.acquired) == 1
    assert registry.lookups == []
    state = gate.snapshot()
    assert state.phase is GatePhase.PRESENT_UNREGISTERED and state.plate is None


async def test_scenario_c_rotates_credentials_until_success(gate, jpeg_800x600):
    await gate.report_sensor(True)
    rotator = FakeRotator()
    ocr = ScriptedOCR(RATE_LIMITED, RATE_LIMITED, plate("XYZ987"))
    orchestrator = build(gate, ocr=ocr, rotator=rotator)

    response = await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")

    assert len(rotator.acquired) == 3
    assert [c.identifier for c in ocr.calls] == ["key-1", "key-2", "key-3"]
    assert response.focus_plate == "XYZ987"


async def test_exhausted_attempts_degrade_to_no_detection(gate, jpeg_800x600):
    await gate.report_sensor(True)
    rotator = FakeRotator()
    orchestrator = build(gate, ocr=ScriptedOCR(OcrOutcome.transient("malformed")), rotator=rotator)

    response = await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")

    assert len(rotator.acquired) == 3
    assert response.focus_plate is None and response.detections == []
    assert gate.snapshot().phase is GatePhase.PRESENT_UNREGISTERED


async def test_scenario_d_unregistered_publishes_once(gate, publisher, jpeg_800x600):
    await gate.report_sensor(True)
    before = len(publisher.events)
    registry = FakeRegistry()
    orchestrator = build(gate, ocr=ScriptedOCR(plate("nbc 1234")), registry=registry)

    response = await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")

    state = gate.snapshot()
    assert state.phase is GatePhase.PRESENT_UNREGISTERED
    assert state.plate == "NBC1234" and state.registered is False
    assert response.focus_plate == state.plate
    assert response.detections[0]["plate_text"] == "nbc 1234"
    assert registry.lookups == ["NBC1234"]
    assert len(publisher.events) - before == 1


async def test_registered_match_then_cached(gate, publisher, jpeg_800x600):
    await gate.report_sensor(True)
    vehicle = VehicleRecord("NBC1234", VehicleSummary("Toyota", "Vios", "Sedan"), "Maria Santos")
    ocr = ScriptedOCR(plate("NBC-1234"))
    orchestrator = build(gate, ocr=ocr, registry=FakeRegistry({"NBC1234": vehicle}))

    first = await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")
    second = await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")

    state = gate.snapshot()
    assert state.phase is GatePhase.PRESENT_REGISTERED
    assert state.driver_name == "Maria Santos"
    assert first.focus_plate == state.plate == "NBC1234"
    assert second.cached and second.focus_plate == "NBC1234"
    assert second.detections == first.detections
    assert len(ocr.calls) == 1
    assert len(publisher.events) == 2


async def test_sensor_absent_skips_ocr(gate, jpeg_800x600):
    ocr = ScriptedOCR()
    orchestrator = build(gate, ocr=ocr)
    gate.claim_detection()

    response = await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")

    assert response.to_dict() == {
        "stream_id": "mobile-1", "image_w": 800, "image_h": 600, "focus_plate": None, "detections": [],
    }
    assert ocr.calls == []
    assert not gate.detection_in_progress


async def test_pending_absence_skips_ocr_until_idle(publisher, jpeg_800x600):
    gate = GateStateMachine(publisher, dwell_seconds=0.2, reset_timeout_seconds=0.5)
    ocr = ScriptedOCR(plate("NBC1234"))
    orchestrator = build(gate, ocr=ocr)
    try:
        await gate.report_sensor(True)
        await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")
        await gate.report_sensor(False)
        assert gate.absence_pending

        responses = []
        for _ in range(15):
            await asyncio.sleep(0.1)
            responses.append(
                await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")
            )

        assert len(ocr.calls) == 1
        assert all(r.focus_plate is None and r.detections == [] for r in responses)
        assert gate.snapshot().phase is GatePhase.IDLE
        assert [e[2]["phase"] for e in publisher.events] == ["present_unknown", "present_unregistered", "idle"]
    finally:
        await gate.close()


async def test_busy_when_at_capacity(gate, jpeg_800x600):
    await gate.report_sensor(True)
    ocr = BlockingOCR(plate("ABC1234"))
    orchestrator = build(gate, ocr=ocr)

    first = asyncio.ensure_future(orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg"))
    await ocr.entered.wait()

    busy = await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")
    assert busy.to_dict() == {
        "stream_id": "mobile-1", "image_w": 0, "image_h": 0, "focus_plate": None, "detections": [], "busy": True,
    }

    ocr.release()
    result = await first
    assert result.focus_plate == "ABC1234"
    assert len(ocr.calls) == 1
    assert orchestrator.in_flight == 0


async def test_second_request_in_same_episode_returns_busy_state(gate, jpeg_800x600):
    await gate.report_sensor(True)
    ocr = BlockingOCR(plate("ABC1234"))
    orchestrator = build(gate, ocr=ocr, max_concurrent=2)

    first = asyncio.ensure_future(orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg"))
    await ocr.entered.wait()

    second = await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")
    assert second.busy
    assert second.detections == []

    ocr.release()
    await first
    assert len(ocr.calls) == 1


async def test_no_active_credential_propagates_and_releases(gate, jpeg_800x600):
    await gate.report_sensor(True)
    ocr = ScriptedOCR()
    orchestrator = build(gate, ocr=ocr, rotator=FakeRotator(exhausted=True))

    with pytest.raises(NoActiveCredential):
        await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")

    assert ocr.calls == []
    assert orchestrator.in_flight == 0
    assert not gate.detection_in_progress


async def test_unexpected_error_is_wrapped_and_releases(gate, jpeg_800x600):
    await gate.report_sensor(True)
    orchestrator = build(gate, ocr=FailingOCR())

    with pytest.raises(InternalDetectionError):
        await orchestrator.handle_detection_request("mobile-1", jpeg_800x600, "image/jpeg")

    assert orchestrator.in_flight == 0
    assert not gate.detection_in_progress
    assert gate.claim_detection() is not None


@pytest.mark.parametrize(
    "data, content_type, message",
    [
        (b"", "image/jpeg", "frame is required"),
        (None, "image/jpeg", "frame is required"),
        (b"%PDF-1.4", "application/pdf", "File must be an image"),
        (b"x" * (4 * 1024 * 1024 + 1), "image/jpeg", "Image too large (>4MB) for Groq"),
    ],
)
async def test_invalid_images(gate, data, content_type, message):
    orchestrator = build(gate)
    with pytest.raises(InvalidImage) as exc:
        await orchestrator.handle_detection_request("mobile-1", data, content_type)
    assert exc.value.message == message
    assert orchestrator.in_flight == 0


async def test_unreadable_image(gate):
    await gate.report_sensor(True)
    ocr = ScriptedOCR()
    orchestrator = build(gate, ocr=ocr)
    with pytest.raises(UnreadableImage):
        await orchestrator.handle_detection_request("mobile-1", b"not really a jpeg", "image/jpeg")
    assert ocr.calls == []


async def test_png_dimensions(gate):
    await gate.report_sensor(True)
    orchestrator = build(gate, ocr=ScriptedOCR(UNKNOWN))
    response = await orchestrator.handle_detection_request("mobile-1", make_image(320, 240, "PNG"), "image/png")
    assert (response.image_w, response.image_h) == (320, 240)
