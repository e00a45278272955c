import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional
from confluent_kafka import Producer, KafkaError
from src.domain.Interfaces.event_publisher import IEventPublisher
from src.core.config import settings

logger = logging.getLogger(__name__)

class KafkaPublisher(IEventPublisher):
    """
    Publica eventos del gate y del video relay en Kafka.
    El canal lógico (gate-channel, video-channel) es el tópico y el evento la key.
    Espera el callback de entrega con polling cooperativo (asyncio.sleep) para
    no bloquear el event loop.
    """

    def __init__(
        self,
        delivery_timeout: Optional[float] = None,
        producer_conf: Optional[dict] = None,
        producer: Optional[Producer] = None,
        metadata_timeout: Optional[float] = None,
    ):
        base_conf = {
            "bootstrap.servers": settings.kafka_broker,
            "client.id": settings.app_name,
            "enable.idempotence": True,   # evita duplicados en el broker
            "acks": "all",
            "message.send.max.retries": 3,
            "socket.timeout.ms": 30000,
            "request.timeout.ms": 30000,
            "linger.ms": 5,
            "compression.type": "lz4",
        }

        if producer_conf:
            base_conf.update(producer_conf)

        self.producer = producer or Producer(base_conf)
        self.delivery_timeout = delivery_timeout or settings.kafka_delivery_timeout

        # métricas internas básicas
        self.metrics = {
            "publish_ok": 0,
            "publish_failed": 0,
            "publish_timeout": 0
        }

        if producer is None:
            self._wait_for_metadata(timeout=metadata_timeout or settings.kafka_metadata_timeout)

    def _wait_for_metadata(self, timeout: float = 10.0) -> None:
        """
        Intenta obtener metadata del cluster antes de permitir produces (solo al arrancar).
        Es bloqueante: desde código async construir el publisher con asyncio.to_thread.
        """
        deadline = time.time() + timeout
        while time.time() < deadline:
            try:
                md = self.producer.list_topics(timeout=2.0)
                if md and md.brokers:
                    logger.info("Kafka producer metadata OK: brokers=%s", list(md.brokers.keys()))
                    return
            except Exception as ex:
                logger.debug("Esperando metadata kafka: %s", ex)
            time.sleep(1.0)
        logger.warning("No se obtuvo metadata del broker en %.0fs; intentos futuros pueden fallar.", timeout)

    # ============================================================
    #  PUBLICAR EVENTO
    # ============================================================
    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        logger.debug("Publish llamado para channel=%s event=%s", channel, event)

        start_time = time.time()
        value = json.dumps(
            {"event": event, "data": payload, "ts": int(start_time * 1000)},
            ensure_ascii=False,
            default=str,
        )
        delivered = {"err": None, "called": False}

        # ------------------------------
        # Callback de entrega (lo dispara producer.poll)
        # ------------------------------
        def _cb(err, msg):
            delivered["called"] = True
            delivered["err"] = err
            if err is not None:
                logger.error("❌ Kafka delivery callback error: %s", err)
            else:
                latency = (time.time() - start_time) * 1000
                logger.debug("✅ Kafka delivered topic=%s partition=%s offset=%s latency=%.1fms",
                             msg.topic(), msg.partition(), msg.offset(), latency)

        try:
            self.producer.produce(
                topic=channel,
                key=event,
                value=value.encode("utf-8"),
                callback=_cb,
            )
        except BufferError as ex:
            self.metrics["publish_failed"] += 1
            raise Exception(f"Kafka local queue full: {ex}") from ex

        # ------------------------------
        # Polling cooperativo mientras se espera el callback
        # ------------------------------
        deadline = time.time() + self.delivery_timeout
        while not delivered["called"] and time.time() < deadline:
            self.producer.poll(0)
            if delivered["called"]:
                break
            await asyncio.sleep(0.02)

        # ------------------------------
        # Validar resultado / timeout
        # ------------------------------
        if not delivered["called"]:
            logger.warning("⚠️ Timeout esperando confirmación de Kafka (%.1fs)", self.delivery_timeout)
            self.metrics["publish_timeout"] += 1
            raise Exception("Kafka delivery timeout")

        if delivered["err"] is not None:
            err = delivered["err"]
            msg_err = err.str() if isinstance(err, KafkaError) and hasattr(err, "str") else str(err)
            self.metrics["publish_failed"] += 1
            raise Exception(f"Kafka delivery failed: {msg_err}")

        self.metrics["publish_ok"] += 1

    # ============================================================
    #  CIERRE
    # ============================================================
    async def close(self, timeout: float = 5.0) -> None:
        try:
            # flush bloquea hasta vaciar la cola: fuera del event loop
            await asyncio.to_thread(self.producer.flush, timeout)
            logger.info("Kafka producer flushed/closed")
            logger.info("Métricas finales: %s", self.metrics)
        except Exception:
            logger.exception("Error al flush/close del Kafka producer")
