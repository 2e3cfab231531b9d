import logging
from dataclasses import dataclass

import httpx

from restbench.config import Settings
from restbench.database import create_db_engine, create_session_factory, create_tables
from restbench.services.http_executor import HttpExecutor
from restbench.services.sql_storage import SqlStorage
from restbench.services.storage import MemStorage, Storage
from restbench.services.variables import VariableResolver

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Long-lived collaborators shared by every request handler."""

    settings: Settings
    storage: Storage
    resolver: VariableResolver
    http_executor: HttpExecutor

    async def aclose(self) -> None:
        await self.http_executor.aclose()
        self.storage.close()


def build_storage(settings: Settings) -> Storage:
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "memory":
        logger.info("Using in-memory storage")
        return MemStorage()
    if backend == "sqlite":
        engine = create_db_engine(settings.DATABASE_URL)
        create_tables(engine)
        logger.info("Using SQL storage at %s", settings.DATABASE_URL)
        return SqlStorage(create_session_factory(engine), engine)
    raise ValueError(f"Unknown STORAGE_BACKEND {settings.STORAGE_BACKEND!r}")


def build_services(
    settings: Settings,
    storage: Storage | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AppServices:
    storage = storage if storage is not None else build_storage(settings)
    return AppServices(
        settings=settings,
        storage=storage,
        resolver=VariableResolver(storage),
        http_executor=HttpExecutor(timeout=settings.HTTP_REQUEST_TIMEOUT, transport=transport),
    )
