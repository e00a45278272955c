# src/domain/Services/credential_rotator.py
import asyncio
import logging

from src.domain.exceptions import NoActiveCredential
from src.domain.Interfaces.credential_repository import ICredentialRepository
from src.domain.Models.credential import Credential
from src.monitoring.metrics import credential_acquisitions_total

logger = logging.getLogger(__name__)


class CredentialRotator:
    """
    Rotación de API keys por menor uso.

    El repositorio ya hace SELECT ... FOR UPDATE + UPDATE en una transacción;
    el asyncio.Lock serializa además a los adquirentes de este proceso, así
    que dos peticiones concurrentes nunca eligen la misma key "menos usada"
    sin ver el incremento de la otra (SQLite ignora FOR UPDATE).
    """

    def __init__(self, repository: ICredentialRepository):
        self.repository = repository
        self._lock = asyncio.Lock()

    async def acquire_credential(self) -> Credential:
        async with self._lock:
            try:
                credential = await self.repository.acquire_least_used()
            except NoActiveCredential:
                credential_acquisitions_total.labels(status="exhausted").inc()
                logger.error("❌ No hay API keys activas en el pool")
                raise
            except Exception:
                credential_acquisitions_total.labels(status="error").inc()
                logger.exception("Error adquiriendo credencial del pool")
                raise

        credential_acquisitions_total.labels(status="ok").inc()
        return credential
