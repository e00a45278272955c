# src/domain/Models/credential.py
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from src.infrastructure.Database.entities.api_key_entity import APIKeyEntity

@dataclass
class Credential:
    """
    Modelo de dominio para una API key del pool compartido.
    No depende del ORM ni de infraestructura.
    """
    identifier: str            # único (email de la cuenta)
    secret_key: str
    display_name: Optional[str] = None
    usage_count: int = 0
    active: bool = True

    def __repr__(self) -> str:
        # nunca exponer la key en logs
        return (
            f"Credential(identifier='{self.identifier}', name='{self.display_name}', "
            f"usage={self.usage_count}, active={self.active})"
        )

    @staticmethod
    def from_entity(entity: "APIKeyEntity") -> "Credential":
        """Convierte una entidad SQLAlchemy a un modelo de dominio."""
        return Credential(
            identifier=entity.email,
            secret_key=entity.api_key,
            display_name=entity.name,
            usage_count=entity.usage or 0,
            active=bool(entity.active),
        )

    def to_entity(self):
        """Convierte el modelo de dominio a una entidad SQLAlchemy (para persistencia)."""
        from src.infrastructure.Database.entities.api_key_entity import APIKeyEntity
        return APIKeyEntity(
            email=self.identifier,
            name=self.display_name,
            api_key=self.secret_key,
            usage=self.usage_count,
            active=self.active,
        )
