# src/infrastructure/Database/entities/api_key_entity.py
from sqlalchemy import Column, String, Integer, Boolean
from src.infrastructure.Database.base import Base

class APIKeyEntity(Base):
    __tablename__ = "api_key_management"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(150), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=True)
    api_key = Column(String(255), nullable=False)
    usage = Column(Integer, nullable=True, default=0)
    active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return (
            f"<APIKeyEntity(id={self.id}, email='{self.email}', "
            f"name='{self.name}', usage={self.usage}, active={self.active})>"
        )
