from contextlib import asynccontextmanager
from pathlib import Path
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from venturelink.api.endpoints.affiliations import router as affiliations_router
from venturelink.core.config import settings
from venturelink.core.error_handlers import (
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    venturelink_exception_handler,
)
from venturelink.core.exceptions import VentureLinkBaseException
from venturelink.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(configure_logging: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if configure_logging:
            setup_logging(
                level=settings.LOG_LEVEL,
                enable_json=settings.LOG_JSON,
                log_dir=Path(settings.LOG_DIR) if settings.LOG_DIR else None,
            )
        logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION} ({settings.ENVIRONMENT})")
        yield
        logger.info("Shutting down")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    app.add_exception_handler(VentureLinkBaseException, venturelink_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        affiliations_router,
        prefix=f"{settings.API_PREFIX}/investor/affiliations",
        tags=["affiliations"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": settings.PROJECT_NAME, "version": settings.VERSION}

    return app


app = create_app()
