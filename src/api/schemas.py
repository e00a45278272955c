from typing import Optional

from pydantic import BaseModel

from src.domain.exceptions import InvalidSensorState

SENSOR_STATES = {"YES": True, "NO": False}


class SensorRequest(BaseModel):
    state: Optional[str] = None

    def is_present(self) -> bool:
        """'YES'/'NO' sin distinguir mayúsculas; cualquier otra cosa es inválida."""
        key = (self.state or "").strip().upper()
        if key not in SENSOR_STATES:
            raise InvalidSensorState()
        return SENSOR_STATES[key]
