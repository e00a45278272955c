import logging

import uvicorn

from src.core.config import settings
from src.monitoring.metrics import start_metrics_server

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    if settings.prometheus_port:
        start_metrics_server(port=settings.prometheus_port)

    logger.info("🚀 Gate access service iniciando en %s:%d (env=%s)",
                settings.app_host, settings.app_port, settings.app_env)

    try:
        uvicorn.run(
            "src.api.main:app",
            host=settings.app_host,
            port=settings.app_port,
            log_config=None,
        )
    except KeyboardInterrupt:
        logger.info("🧠 Deteniendo…")


if __name__ == "__main__":
    main()
