from abc import ABC, abstractmethod
from typing import Any, Dict

class IEventPublisher(ABC):
    """
    Publicador de eventos a sistemas externos (Kafka, consola...).
    """
    @abstractmethod
    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        """Publica `payload` como evento `event` en el canal `channel`."""
        pass

    async def close(self) -> None:
        """Libera recursos del publisher (opcional)."""
        return None
