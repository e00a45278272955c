import asyncio
import io
from typing import Dict, List, Optional

from PIL import Image

from src.domain.exceptions import NoActiveCredential
from src.domain.Interfaces.event_publisher import IEventPublisher
from src.domain.Interfaces.ocr_reader import IPlateOCR
from src.domain.Models.credential import Credential
from src.domain.Models.detection_result import DetectionResult, NormalizedBox
from src.domain.Models.ocr_outcome import OcrOutcome
from src.domain.Models.vehicle import VehicleRecord


def make_image(width: int = 800, height: int = 600, fmt: str = "JPEG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(40, 40, 40)).save(buf, format=fmt)
    return buf.getvalue()


def plate(text: str, conf: float = 0.9, box=(0.1, 0.2, 0.3, 0.4)) -> OcrOutcome:
    return OcrOutcome.from_result(
        DetectionResult(plate_text=text, ocr_conf=conf, box=NormalizedBox(*box))
    )


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingPublisher(IEventPublisher):
    def __init__(self, fail: bool = False):
        self.events: List[tuple] = []
        self.fail = fail
        self.closed = False

    async def publish(self, channel, event, payload):
        if self.fail:
            raise Exception("connection refused")
        self.events.append((channel, event, payload))

    def on(self, channel: str) -> List[dict]:
        return [payload for c, _, payload in self.events if c == channel]

    async def close(self):
        self.closed = True


class ScriptedOCR(IPlateOCR):
    """Devuelve los outcomes en orden; el último se repite."""

    def __init__(self, *outcomes: OcrOutcome):
        self.outcomes = list(outcomes) or [plate("ABC1234")]
        self.calls: List[Credential] = []

    async def detect_plate(self, credential, image_bytes, content_type):
        self.calls.append(credential)
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]


class BlockingOCR(ScriptedOCR):
    """Se queda esperando hasta que el test llame release()."""

    def __init__(self, *outcomes: OcrOutcome):
        super().__init__(*outcomes)
        self.entered = asyncio.Event()
        self._gate = asyncio.Event()

    def release(self):
        self._gate.set()

    async def detect_plate(self, credential, image_bytes, content_type):
        self.entered.set()
        await self._gate.wait()
        return await super().detect_plate(credential, image_bytes, content_type)


class FailingOCR(IPlateOCR):
    async def detect_plate(self, credential, image_bytes, content_type):
        raise RuntimeError("boom")


class FakeRotator:
    def __init__(self, exhausted: bool = False):
        self.exhausted = exhausted
        self.acquired: List[Credential] = []

    async def acquire_credential(self) -> Credential:
        if self.exhausted:
            raise NoActiveCredential()
        credential = Credential(identifier=f"key-{len(self.acquired) + 1}", secret_key="gsk_test")
        self.acquired.append(credential)
        return credential


class FakeRegistry:
    def __init__(self, records: Optional[Dict[str, VehicleRecord]] = None):
        self.records = records or {}
        self.lookups: List[str] = []

    async def find_active_by_plate(self, normalized_plate):
        self.lookups.append(normalized_plate)
        return self.records.get(normalized_plate)
