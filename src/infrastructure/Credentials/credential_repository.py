# src/infrastructure/Credentials/credential_repository.py
import logging
from typing import List

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domain.exceptions import NoActiveCredential
from src.domain.Interfaces.credential_repository import ICredentialRepository
from src.domain.Models.credential import Credential
from src.infrastructure.Database.entities.api_key_entity import APIKeyEntity

logger = logging.getLogger(__name__)


class SqlCredentialRepository(ICredentialRepository):
    """Pool de API keys persistente usando SQLAlchemy (async)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def acquire_least_used(self) -> Credential:
        """
        SELECT ... ORDER BY usage ASC NULLS FIRST, email ASC LIMIT 1 FOR UPDATE
        + UPDATE usage = COALESCE(usage, 0) + 1, en una sola transacción.
        Cualquier error hace rollback completo (session.begin()).
        """
        async with self.session_factory() as session:
            async with session.begin():
                stmt = (
                    select(APIKeyEntity)
                    .where(APIKeyEntity.active.is_(True))
                    .order_by(APIKeyEntity.usage.asc().nulls_first(), APIKeyEntity.email.asc())
                    .limit(1)
                    .with_for_update()
                )
                entity = (await session.execute(stmt)).scalars().first()
                if entity is None:
                    raise NoActiveCredential()

                await session.execute(
                    update(APIKeyEntity)
                    .where(APIKeyEntity.id == entity.id)
                    .values(usage=func.coalesce(APIKeyEntity.usage, 0) + 1)
                )
                await session.refresh(entity)
                credential = Credential.from_entity(entity)

        logger.debug("🔑 Credencial %s seleccionada (usage=%d)", credential.identifier, credential.usage_count)
        return credential

    async def get_all(self) -> List[Credential]:
        async with self.session_factory() as session:
            entities = (
                await session.execute(select(APIKeyEntity).order_by(APIKeyEntity.email.asc()))
            ).scalars().all()
            return [Credential.from_entity(e) for e in entities]

    async def save(self, credential: Credential) -> Credential:
        """Inserta o actualiza una credencial (clave: identifier)."""
        async with self.session_factory() as session:
            async with session.begin():
                existing = (
                    await session.execute(select(APIKeyEntity).filter_by(email=credential.identifier))
                ).scalars().first()
                if existing:
                    # Actualizar datos existentes (el uso nunca retrocede)
                    existing.name = credential.display_name
                    existing.api_key = credential.secret_key
                    existing.active = credential.active
                    existing.usage = max(existing.usage or 0, credential.usage_count)
                    entity = existing
                else:
                    # Crear nuevo registro
                    entity = credential.to_entity()
                    session.add(entity)
            await session.refresh(entity)
            return Credential.from_entity(entity)

    async def deactivate(self, identifier: str) -> None:
        """Las credenciales nunca se borran: solo se desactivan."""
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(APIKeyEntity).where(APIKeyEntity.email == identifier).values(active=False)
                )
        logger.info("🚫 Credencial %s desactivada", identifier)
