# src/application/frame_relay.py
import logging
import time
from collections import OrderedDict
from typing import Callable, Optional

from src.core.config import settings
from src.domain.exceptions import FrameNotFound, InvalidImage
from src.domain.Interfaces.event_publisher import IEventPublisher
from src.domain.Models.frame import LatestFrame
from src.monitoring.metrics import frames_stored_total

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"


class FrameRelay:
    """
    Relay del video del móvil al dashboard.
    Un slot por stream_id (solo el último frame); se avisa por pub/sub con
    metadatos y el dashboard baja la imagen por /api/latest-frame.
    """

    def __init__(
        self,
        publisher: IEventPublisher,
        max_streams: Optional[int] = None,
        channel: Optional[str] = None,
        event: Optional[str] = None,
        default_stream_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.publisher = publisher
        self.max_streams = max(1, max_streams or settings.frame_max_streams)
        self.channel = channel or settings.video_channel
        self.event = event or settings.video_event
        self.default_stream_id = default_stream_id or settings.default_stream_id
        self._clock = clock
        self._frames: "OrderedDict[str, LatestFrame]" = OrderedDict()

    def resolve_stream_id(self, stream_id: Optional[str]) -> str:
        return (stream_id or "").strip() or self.default_stream_id

    async def store_frame(
        self,
        stream_id: Optional[str],
        image_bytes: bytes,
        content_type: Optional[str] = None,
    ) -> LatestFrame:
        if not image_bytes:
            raise InvalidImage("frame is required")

        sid = self.resolve_stream_id(stream_id)
        frame = LatestFrame(
            image_bytes=image_bytes,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            captured_at=self._clock(),
        )

        self._frames[sid] = frame
        self._frames.move_to_end(sid)
        while len(self._frames) > self.max_streams:
            evicted, _ = self._frames.popitem(last=False)
            logger.info("Stream %s descartado del relay (máx %d streams)", evicted, self.max_streams)

        frames_stored_total.inc()
        logger.debug("Frame de %s almacenado: %s", sid, frame.to_dict())

        try:
            await self.publisher.publish(
                self.channel, self.event, {"stream_id": sid, "ts": frame.captured_at_ms}
            )
        except Exception:
            logger.exception("❌ Error publicando frame de %s", sid)

        return frame

    def get_latest_frame(self, stream_id: Optional[str] = None) -> LatestFrame:
        sid = self.resolve_stream_id(stream_id)
        frame = self._frames.get(sid)
        if frame is None:
            raise FrameNotFound()
        return frame

    def stream_ids(self):
        return list(self._frames.keys())
