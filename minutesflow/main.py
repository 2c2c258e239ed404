import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from minutesflow import __version__
from minutesflow.core.config import settings
from minutesflow.core.exceptions import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
    generic_exception_handler,
)
from minutesflow.api.v1 import auth, health, workflow
from minutesflow.db.base import Base
from minutesflow.db.session import SessionLocal, engine
from minutesflow.services.container import build_workflow

# Configure logging
log_level = logging.DEBUG if settings.ENV == "development" else logging.INFO
logging.basicConfig(
    level=log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Suppress verbose logging from third-party libraries
noisy_loggers = [
    "sqlalchemy.engine",
    "httpx",
    "httpcore",
    "multipart",
    "python_multipart",
]
for logger_name in noisy_loggers:
    logging.getLogger(logger_name).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the collection adapters once and release them on shutdown."""
    import minutesflow.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    app.state.workflow = build_workflow(SessionLocal, settings)
    logger.info(f"Starting {settings.PROJECT_NAME} in {settings.ENV} mode")
    try:
        yield
    finally:
        app.state.workflow.shutdown()


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Meeting minutes workflow: add, finalize, unfinalize and remove minutes",
        version=__version__,
        docs_url="/api/docs" if settings.ENV == "development" else None,
        redoc_url="/api/redoc" if settings.ENV == "development" else None,
        lifespan=lifespan,
    )

    # Register exception handlers
    application.add_exception_handler(AppException, app_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(Exception, generic_exception_handler)

    # API v1 routers
    application.include_router(auth.router, prefix=settings.API_V1_PREFIX)
    application.include_router(health.router, prefix=settings.API_V1_PREFIX)
    application.include_router(workflow.router, prefix=settings.API_V1_PREFIX)

    @application.get("/")
    def read_root():
        """Root endpoint - basic API status."""
        return {
            "message": "OK",
            "service": settings.PROJECT_NAME,
            "version": __version__,
        }

    return application


app = create_app()
