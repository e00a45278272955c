# src/application/detection_orchestrator.py
import logging
import time
from typing import Callable, List, Optional, Tuple

from src.core.config import settings
from src.domain.exceptions import GateAccessError, InternalDetectionError, InvalidImage
from src.domain.Interfaces.ocr_reader import IPlateOCR
from src.domain.Interfaces.text_normalizer import ITextNormalizer
from src.domain.Interfaces.vehicle_registry import IVehicleRegistry
from src.domain.Models.detection_result import DetectionResponse, DetectionResult, detection_to_dict
from src.domain.Models.gate_state import GatePhase
from src.domain.Models.ocr_outcome import OcrOutcome, OcrOutcomeKind
from src.domain.Services.credential_rotator import CredentialRotator
from src.domain.Services.gate_state_machine import GateStateMachine
from src.infrastructure.Imaging.image_probe import read_image_size
from src.monitoring.metrics import detection_requests_total, detections_in_flight

logger = logging.getLogger(__name__)


class DetectionOrchestrator:
    """
    Flujo de /api/detect:

    admisión -> validación -> dimensiones -> short-circuit por presencia
    -> OCR con rotación de credenciales -> registro -> estado del gate.

    El contador de detecciones en curso y el flag del episodio se liberan
    siempre en `finally`.
    """

    def __init__(
        self,
        rotator: CredentialRotator,
        ocr: IPlateOCR,
        registry: IVehicleRegistry,
        gate: GateStateMachine,
        normalizer: ITextNormalizer,
        max_concurrent: Optional[int] = None,
        max_attempts: Optional[int] = None,
        max_image_bytes: Optional[int] = None,
        image_probe: Callable[[bytes], Tuple[int, int]] = read_image_size,
    ):
        self.rotator = rotator
        self.ocr = ocr
        self.registry = registry
        self.gate = gate
        self.normalizer = normalizer
        self.max_concurrent = max(1, max_concurrent or settings.detect_max_concurrent)
        self.max_attempts = max(1, max_attempts or settings.detect_max_attempts)
        self.max_image_bytes = max_image_bytes or settings.detect_max_image_bytes
        self.image_probe = image_probe

        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    # ---------------------------------------------------------
    #  ENTRADA
    # ---------------------------------------------------------
    async def handle_detection_request(
        self,
        stream_id: Optional[str],
        image_bytes: Optional[bytes],
        content_type: Optional[str],
    ) -> DetectionResponse:
        if self._in_flight >= self.max_concurrent:
            detection_requests_total.labels(outcome="busy").inc()
            logger.debug("Detección rechazada: %d en curso (máx %d)", self._in_flight, self.max_concurrent)
            return DetectionResponse(stream_id=stream_id, busy=True)

        self._in_flight += 1
        detections_in_flight.inc()
        try:
            return await self._handle(stream_id, image_bytes, content_type)
        except GateAccessError as e:
            detection_requests_total.labels(outcome=type(e).__name__).inc()
            raise
        except Exception as e:
            detection_requests_total.labels(outcome="error").inc()
            logger.exception("❌ Error inesperado procesando detección (stream=%s)", stream_id)
            raise InternalDetectionError() from e
        finally:
            self._in_flight -= 1
            detections_in_flight.dec()

    # ---------------------------------------------------------
    #  FLUJO
    # ---------------------------------------------------------
    async def _handle(
        self,
        stream_id: Optional[str],
        image_bytes: Optional[bytes],
        content_type: Optional[str],
    ) -> DetectionResponse:
        self._validate(image_bytes, content_type)
        image_w, image_h = self.image_probe(image_bytes)

        state = self.gate.snapshot()

        if not state.sensor_present or self.gate.absence_pending:
            # sin vehículo (o saliendo): no se llama al OCR
            if not state.sensor_present:
                self.gate.reset_detection_flag()
            detection_requests_total.labels(outcome="no_vehicle").inc()
            return DetectionResponse(stream_id=stream_id, image_w=image_w, image_h=image_h)

        if state.phase is GatePhase.PRESENT_REGISTERED:
            detection_requests_total.labels(outcome="cached").inc()
            return DetectionResponse(
                stream_id=stream_id,
                image_w=state.image_width,
                image_h=state.image_height,
                focus_plate=state.plate,
                detections=list(state.detections),
                cached=True,
            )

        episode = self.gate.claim_detection()
        if episode is None:
            detection_requests_total.labels(outcome="in_progress").inc()
            return DetectionResponse(
                stream_id=stream_id,
                image_w=state.image_width,
                image_h=state.image_height,
                focus_plate=state.plate,
                detections=list(state.detections),
                busy=True,
            )

        try:
            outcome = await self._read_plate(image_bytes, content_type)
            return await self._resolve(episode, stream_id, outcome, image_w, image_h)
        finally:
            self.gate.release_detection(episode)

    def _validate(self, image_bytes: Optional[bytes], content_type: Optional[str]) -> None:
        if not image_bytes:
            raise InvalidImage("frame is required")
        if not content_type or not content_type.lower().startswith("image/"):
            raise InvalidImage("File must be an image")
        if len(image_bytes) > self.max_image_bytes:
            raise InvalidImage("Image too large (>4MB) for Groq")

    async def _read_plate(self, image_bytes: bytes, content_type: str) -> OcrOutcome:
        """
        Hasta `max_attempts` intentos, cada uno con una credencial nueva.
        NoActiveCredential se propaga sin más intentos.
        """
        outcome = OcrOutcome.transient("not_attempted")
        for attempt in range(1, self.max_attempts + 1):
            credential = await self.rotator.acquire_credential()
            started = time.time()
            outcome = await self.ocr.detect_plate(credential, image_bytes, content_type)
            logger.debug(
                "Intento OCR %d/%d con %s -> %s (%.0fms)",
                attempt, self.max_attempts, credential.identifier,
                outcome.kind.value, (time.time() - started) * 1000,
            )
            if outcome.is_final:
                return outcome
            logger.warning("Intento OCR %d/%d falló (%s), rotando credencial",
                           attempt, self.max_attempts, outcome.reason)

        logger.warning("OCR sin resultado tras %d intentos", self.max_attempts)
        return outcome

    async def _resolve(
        self,
        episode: int,
        stream_id: Optional[str],
        outcome: OcrOutcome,
        image_w: int,
        image_h: int,
    ) -> DetectionResponse:
        if outcome.kind is not OcrOutcomeKind.SUCCESS:
            await self.gate.resolve_unregistered(episode, None, [], image_w, image_h)
            detection_requests_total.labels(outcome="no_plate").inc()
            return DetectionResponse(stream_id=stream_id, image_w=image_w, image_h=image_h)

        result: DetectionResult = outcome.result
        detections: List[dict] = [detection_to_dict(result, image_w, image_h, is_focus=True)]

        plate = self.normalizer.normalize(result.plate_text)
        vehicle = await self.registry.find_active_by_plate(plate)

        if vehicle is not None:
            logger.info("✅ Placa %s registrada (%s)", plate, vehicle.driver_name or "sin conductor")
            await self.gate.resolve_registered(episode, plate, vehicle, detections, image_w, image_h)
            detection_requests_total.labels(outcome="registered").inc()
        else:
            logger.info("🚫 Placa %s no registrada", plate)
            await self.gate.resolve_unregistered(episode, plate, detections, image_w, image_h)
            detection_requests_total.labels(outcome="unregistered").inc()

        return DetectionResponse(
            stream_id=stream_id,
            image_w=image_w,
            image_h=image_h,
            focus_plate=plate,
            detections=detections,
        )
