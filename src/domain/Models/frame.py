from dataclasses import dataclass


@dataclass(frozen=True)
class LatestFrame:
    """
    Último frame recibido para un stream_id (slot único, se reemplaza en cada subida).
    """
    image_bytes: bytes
    content_type: str
    captured_at: float   # epoch en segundos

    @property
    def captured_at_ms(self) -> int:
        return int(self.captured_at * 1000)

    def to_dict(self) -> dict:
        """
        Metadatos del frame (sin los bytes de la imagen).
        Ideal para logs o publishers.
        """
        return {
            "content_type": self.content_type,
            "size": len(self.image_bytes),
            "ts": self.captured_at_ms,
        }
