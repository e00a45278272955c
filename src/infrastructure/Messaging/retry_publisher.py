import asyncio
import logging
from typing import Any, Dict

from src.domain.Interfaces.event_publisher import IEventPublisher

logger = logging.getLogger(__name__)

# fragmentos de mensajes de librdkafka / KafkaPublisher que merecen otro intento
TRANSIENT_MARKERS = (
    "timeout",
    "connection",
    "broker",
    "unreachable",
    "not leader",
    "leader not available",
    "network",
    "queue full",
    "transport",
)


def is_transient_publish_error(exc: Exception) -> bool:
    msg = str(exc).lower()
    return any(marker in msg for marker in TRANSIENT_MARKERS)


class RetryPublisher(IEventPublisher):
    """
    Envuelve otro publisher y reintenta los fallos transitorios con backoff
    exponencial (base_delay, 2*base_delay, ...). Los errores permanentes
    se propagan en el primer intento.
    """

    def __init__(self, inner: IEventPublisher, attempts: int = 3, base_delay: float = 0.5):
        self.inner = inner
        self.attempts = max(1, attempts)
        self.base_delay = base_delay

    def _backoff(self, attempt: int) -> float:
        return self.base_delay * (2 ** (attempt - 1))

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        last_exc: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                await self.inner.publish(channel, event, payload)
                if attempt > 1:
                    logger.info("%s/%s publicado en el intento %d", channel, event, attempt)
                return
            except Exception as e:
                last_exc = e
                if not is_transient_publish_error(e):
                    logger.error("Error no reintentable publicando %s/%s: %s", channel, event, e)
                    raise
                if attempt == self.attempts:
                    break
                wait = self._backoff(attempt)
                logger.warning("Intento %d/%d de %s/%s falló, reintento en %.2fs: %s",
                               attempt, self.attempts, channel, event, wait, e)
                await asyncio.sleep(wait)

        logger.error("❌ %s/%s sin publicar tras %d intentos: %s", channel, event, self.attempts, last_exc)
        raise last_exc

    async def close(self) -> None:
        await self.inner.close()
