# src/infrastructure/Database/entities/driver_entity.py
from sqlalchemy import Column, String, Integer, Boolean
from src.infrastructure.Database.base import Base

class DriverEntity(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(150), nullable=False)
    contact_number = Column(String(50), nullable=True)
    active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<DriverEntity(id={self.id}, full_name='{self.full_name}', active={self.active})>"
