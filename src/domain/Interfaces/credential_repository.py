from abc import ABC, abstractmethod
from typing import List
from src.domain.Models.credential import Credential

class ICredentialRepository(ABC):

    @abstractmethod
    async def acquire_least_used(self) -> Credential:
        """
        Selecciona la credencial activa con menor uso, incrementa su uso y la
        devuelve, todo en una misma transacción. Lanza NoActiveCredential si no hay.
        """
        pass

    @abstractmethod
    async def get_all(self) -> List[Credential]:
        pass

    @abstractmethod
    async def save(self, credential: Credential) -> Credential:
        pass

    @abstractmethod
    async def deactivate(self, identifier: str) -> None:
        pass
