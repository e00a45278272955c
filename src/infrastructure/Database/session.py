# src/infrastructure/Database/session.py
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.config import settings
from src.infrastructure.Database.base import Base
# registrar tablas en Base.metadata
from src.infrastructure.Database.entities import api_key_entity, driver_entity, vehicle_entity  # noqa: F401

logger = logging.getLogger(__name__)


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Crea un AsyncEngine; SQLite en memoria comparte una única conexión."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(url, echo=echo, **kwargs)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


class Database:
    """
    Engine + fábrica de sesiones async.

    connect() prueba la BD configurada y, si falla, cae a SQLite local
    (mismo comportamiento que el microservicio original con el engine sync).
    """

    def __init__(self, url: Optional[str] = None, fallback_url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = url or settings.db_url
        self.fallback_url = fallback_url or settings.db_fallback_url
        self.echo = settings.db_echo if echo is None else echo
        self.engine: AsyncEngine = create_engine_for(self.url, echo=self.echo)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)

    async def connect(self) -> None:
        try:
            # Probar una conexión mínima
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("✅ Conectado correctamente a la BD: %s", self.engine.url.render_as_string(hide_password=True))
        except Exception as e:
            if self.url == self.fallback_url:
                raise
            logger.warning("⚠️ No se pudo conectar a la BD configurada. Usando fallback SQLite. Error: %s", e)
            await self.engine.dispose()
            self.url = self.fallback_url
            self.engine = create_engine_for(self.url, echo=self.echo)
            self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)
            logger.info("💾 Base local SQLite inicializada como fallback")

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
