# src/infrastructure/Database/entities/vehicle_entity.py
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey
from src.infrastructure.Database.base import Base

class VehicleEntity(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plate_number = Column(String(20), nullable=False, index=True)
    brand = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)
    type = Column(String(50), nullable=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)
    active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return (
            f"<VehicleEntity(id={self.id}, plate_number='{self.plate_number}', "
            f"brand='{self.brand}', model='{self.model}', active={self.active})>"
        )
