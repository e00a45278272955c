import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes import router
from src.application.container import ServiceContainer, build_container
from src.core.config import settings
from src.domain.exceptions import GateAccessError

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Sin `container` el lifespan arma los servicios desde settings
    (BD, publisher, OCR) y los libera al apagar.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if container is not None:
            app.state.container = container
            yield
            return

        app.state.container = await build_container()
        try:
            yield
        finally:
            await app.state.container.close()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    if container is not None:
        app.state.container = container

    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GateAccessError)
    async def gate_access_error_handler(request: Request, exc: GateAccessError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.debug("Petición inválida en %s: %s", request.url.path, exc.errors())
        return _error(400, "Invalid request")

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "env": settings.app_env,
            "publisher": settings.publisher_backend,
            "ocr": settings.ocr_backend,
        }

    app.include_router(router)
    return app


app = create_app()
