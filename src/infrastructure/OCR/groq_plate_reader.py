import base64
import logging
import time
from typing import Any, Callable, Dict, Optional

import groq
from groq import AsyncGroq

from src.core.config import settings
from src.domain.exceptions import InvalidImage
from src.domain.Interfaces.ocr_reader import IPlateOCR
from src.domain.Models.credential import Credential
from src.domain.Models.ocr_outcome import OcrOutcome
from src.infrastructure.OCR.ocr_response_parser import collect_text, parse_detection
from src.monitoring.metrics import ocr_attempts_total, ocr_latency

logger = logging.getLogger(__name__)

PLATE_PROMPT = (
    "You are a strict OCR and localization engine for vehicle license plates.\n"
    "Given an image, find the SINGLE most relevant vehicle license plate.\n"
    "Return ONLY a JSON object and nothing else.\n"
    "JSON schema:\n"
    "{\n"
    '  "plate_text": "string, exact plate text like NBC1234",\n'
    '  "ocr_conf": number between 0 and 1,\n'
    '  "nx1": number between 0 and 1,  // left x normalized\n'
    '  "ny1": number between 0 and 1,  // top y normalized\n'
    '  "nx2": number between 0 and 1,  // right x normalized\n'
    '  "ny2": number between 0 and 1   // bottom y normalized\n'
    "}\n"
    "Coordinates are normalized relative to the full image width/height.\n"
    "If you cannot see a plate, respond with:\n"
    '{ "plate_text": "UNKNOWN", "ocr_conf": 0, "nx1": 0, "ny1": 0, "nx2": 0, "ny2": 0 }'
)

_RATE_LIMIT_MARKERS = ("rate_limit_exceeded", "Rate limit reached")


def encode_bytes_to_data_url(image_bytes: bytes, content_type: Optional[str]) -> str:
    ct = content_type or "image/jpeg"
    b64 = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{ct};base64,{b64}"


def is_rate_limit_error(exc: BaseException) -> bool:
    """429 explícito (tipo o status) o mensaje del proveedor."""
    if isinstance(exc, groq.RateLimitError):
        return True
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    if status == 429:
        return True
    message = str(exc)
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


class GroqPlateOCR(IPlateOCR):
    """
    Adaptador OCR sobre Groq (chat completions con imagen inline).

    - Un intento por llamada: los reintentos del SDK se desactivan
      (max_retries=0); rotar la key y reintentar es cosa del orquestador.
    - Los clientes se cachean por API key para reutilizar conexiones.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_completion_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        client_factory: Optional[Callable[[str], Any]] = None,
    ):
        self.model = model or settings.groq_model
        self.temperature = settings.groq_temperature if temperature is None else temperature
        self.max_completion_tokens = max_completion_tokens or settings.groq_max_completion_tokens
        self.timeout = timeout or settings.groq_timeout
        self._client_factory = client_factory or self._default_client
        self._clients: Dict[str, Any] = {}

    def _default_client(self, api_key: str) -> AsyncGroq:
        return AsyncGroq(api_key=api_key, timeout=self.timeout, max_retries=0)

    def _client_for(self, credential: Credential):
        client = self._clients.get(credential.secret_key)
        if client is None:
            client = self._client_factory(credential.secret_key)
            self._clients[credential.secret_key] = client
        return client

    def _build_messages(self, image_bytes: bytes, content_type: str) -> list:
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": PLATE_PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {"url": encode_bytes_to_data_url(image_bytes, content_type)},
                    },
                ],
            }
        ]

    async def detect_plate(self, credential: Credential, image_bytes: bytes, content_type: str) -> OcrOutcome:
        if not image_bytes:
            raise InvalidImage("frame is required")

        client = self._client_for(credential)
        t0 = time.perf_counter()
        try:
            completion = await client.chat.completions.create(
                model=self.model,
                messages=self._build_messages(image_bytes, content_type),
                temperature=self.temperature,
                max_completion_tokens=self.max_completion_tokens,
            )
        except Exception as err:
            if is_rate_limit_error(err):
                logger.warning("[PlateOCR] Rate limit para la key %s; se salta este intento.", credential.identifier)
                ocr_attempts_total.labels(result="rate_limited").inc()
                return OcrOutcome.transient("rate_limited")

            logger.error("[PlateOCR] Error llamando a Groq (key %s): %s", credential.identifier, err)
            ocr_attempts_total.labels(result="transport").inc()
            return OcrOutcome.transient("transport")
        finally:
            ocr_latency.observe(time.perf_counter() - t0)

        choices = getattr(completion, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        text = collect_text(getattr(message, "content", None))
        if not text:
            logger.warning("[PlateOCR] Respuesta vacía del modelo")
            ocr_attempts_total.labels(result="empty").inc()
            return OcrOutcome.transient("empty")

        result = parse_detection(text)
        if result is None:
            ocr_attempts_total.labels(result="malformed").inc()
            return OcrOutcome.transient("malformed")

        outcome = OcrOutcome.from_result(result)
        ocr_attempts_total.labels(result=outcome.kind.value).inc()
        return outcome

    async def close(self) -> None:
        for client in self._clients.values():
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception:
                logger.exception("Error cerrando cliente Groq")
        self._clients.clear()
