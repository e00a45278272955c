# src/domain/exceptions.py


class GateAccessError(Exception):
    """
    Error base del dominio.
    Lleva el código HTTP equivalente y un mensaje apto para el cliente.
    """
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------
#  Validación (4xx, nunca se reintenta)
# ---------------------------------------------------------
class ValidationError(GateAccessError):
    status_code = 400
    default_message = "Invalid request"


class InvalidImage(ValidationError):
    default_message = "File must be an image"


class UnreadableImage(ValidationError):
    default_message = "Unable to read image dimensions"


class InvalidSensorState(ValidationError):
    default_message = "state must be 'YES' or 'NO'"


class FrameNotFound(GateAccessError):
    status_code = 404
    default_message = "No frame yet"


# ---------------------------------------------------------
#  Recursos agotados / errores internos (5xx)
# ---------------------------------------------------------
class NoActiveCredential(GateAccessError):
    status_code = 503
    default_message = "No active API key available"


class InternalDetectionError(GateAccessError):
    status_code = 500
    default_message = "Internal server error"
