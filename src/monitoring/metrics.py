import logging

from prometheus_client import Gauge, Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Peticiones /detect por resultado (detected, no_plate, busy, invalid, error...)
detection_requests_total = Counter(
    "detection_requests_total",
    "Total de peticiones de detección por resultado",
    ["outcome"]
)

# Detecciones en curso (control de admisión)
detections_in_flight = Gauge(
    "detections_in_flight",
    "Detecciones OCR en curso"
)

# Intentos OCR por resultado (success, no_plate_visible, rate_limited, malformed...)
ocr_attempts_total = Counter(
    "ocr_attempts_total",
    "Total de intentos OCR por resultado",
    ["result"]
)

# Latencia OCR
ocr_latency = Histogram(
    "ocr_latency_seconds",
    "Tiempo de una llamada OCR remota"
)

# Rotación de credenciales
credential_acquisitions_total = Counter(
    "credential_acquisitions_total",
    "Credenciales adquiridas del pool",
    ["status"]
)

# Transiciones del gate
gate_transitions_total = Counter(
    "gate_transitions_total",
    "Transiciones publicadas del estado del gate",
    ["phase"]
)

# Frames recibidos
frames_stored_total = Counter(
    "frames_stored_total",
    "Total de frames almacenados por el relay"
)

def start_metrics_server(port: int = 9100):
    """Arranca servidor de métricas Prometheus."""
    start_http_server(port)
    logger.info("📊 Prometheus metrics disponible en :%d", port)
