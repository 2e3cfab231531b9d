import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from restbench.api.v1.router import api_router
from restbench.config import Settings, get_settings
from restbench.services.container import AppServices, build_services

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    log_file = os.getenv("RESTBENCH_LOG_FILE")
    if not log_file:
        return
    log_path = Path(log_file).expanduser().resolve()
    root = logging.getLogger()
    if any(isinstance(h, logging.FileHandler) and h.baseFilename == str(log_path) for h in root.handlers):
        return
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to init file logging: %s", e)
        return
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    logger.info("Logging to %s", log_path)


def create_app(settings: Settings | None = None, services: AppServices | None = None) -> FastAPI:
    """Build the application; ``services`` lets tests inject their own collaborators."""
    configure_logging()
    settings = settings or get_settings()
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s v%s [%s]", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)
        yield
        await services.aclose()
        logger.info("Shutting down %s", settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "version": settings.APP_VERSION}

    return app
