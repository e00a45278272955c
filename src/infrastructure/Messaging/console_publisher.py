import json
import logging
from typing import Any, Dict
from src.domain.Interfaces.event_publisher import IEventPublisher

logger = logging.getLogger(__name__)

class ConsolePublisher(IEventPublisher):
    """
    Implementación dummy que escribe los eventos en el log de forma legible.
    Sirve para desarrollo sin broker.
    """

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        try:
            output = {
                "channel": channel,
                "event": event,
                "data": payload,
            }
            logger.info("📢 Publicando evento:\n%s", json.dumps(output, indent=2, ensure_ascii=False, default=str))

        except (TypeError, ValueError) as e:
            logger.error("❌ Error al serializar evento para consola: %s", e)
