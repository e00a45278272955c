# src/application/container.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from src.application.detection_orchestrator import DetectionOrchestrator
from src.application.frame_relay import FrameRelay
from src.domain.Interfaces.event_publisher import IEventPublisher
from src.domain.Interfaces.ocr_reader import IPlateOCR
from src.domain.Services.credential_rotator import CredentialRotator
from src.domain.Services.gate_state_machine import GateStateMachine
from src.infrastructure.Credentials.credential_repository import SqlCredentialRepository
from src.infrastructure.Database.session import Database
from src.infrastructure.Messaging.factory import create_event_publisher
from src.infrastructure.Normalizer.plate_normalizer import PlateNormalizer
from src.infrastructure.OCR.factory import create_plate_ocr
from src.infrastructure.Registry.vehicle_registry import SqlVehicleRegistry

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Objetos de larga vida compartidos por las rutas HTTP."""
    gate: GateStateMachine
    frames: FrameRelay
    orchestrator: DetectionOrchestrator
    publisher: IEventPublisher
    ocr: Optional[IPlateOCR] = None
    database: Optional[Database] = None

    async def close(self) -> None:
        await self.gate.close()
        try:
            await self.publisher.close()
        except Exception:
            logger.exception("Error cerrando el publisher")
        if self.ocr is not None:
            await self.ocr.close()
        if self.database is not None:
            await self.database.dispose()
        logger.info("🧹 Recursos liberados")


async def build_container(
    database: Optional[Database] = None,
    publisher: Optional[IEventPublisher] = None,
    ocr: Optional[IPlateOCR] = None,
) -> ServiceContainer:
    """Arma el grafo de dependencias a partir de `settings`."""
    database = database or Database()
    await database.connect()
    await database.create_all()

    if publisher is None:
        # el KafkaPublisher espera metadata del broker de forma bloqueante
        publisher = await asyncio.to_thread(create_event_publisher)
    ocr = ocr or create_plate_ocr()

    gate = GateStateMachine(publisher)
    frames = FrameRelay(publisher)
    orchestrator = DetectionOrchestrator(
        rotator=CredentialRotator(SqlCredentialRepository(database.session_factory)),
        ocr=ocr,
        registry=SqlVehicleRegistry(database.session_factory),
        gate=gate,
        normalizer=PlateNormalizer(),
    )

    logger.info("🚀 Servicios listos (publisher=%s, ocr=%s)",
                type(publisher).__name__, type(ocr).__name__)
    return ServiceContainer(
        gate=gate,
        frames=frames,
        orchestrator=orchestrator,
        publisher=publisher,
        ocr=ocr,
        database=database,
    )
