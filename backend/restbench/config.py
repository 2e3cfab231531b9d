import os
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "RestBench"
    APP_VERSION: str = "0.3.0"
    ENVIRONMENT: str = "development"

    # "sqlite" persists through SQLAlchemy, "memory" keeps everything in-process
    STORAGE_BACKEND: str = "sqlite"
    DATABASE_URL: str = "sqlite:///./data/restbench.db"

    CORS_ORIGINS: str = "http://localhost:5173"

    HTTP_REQUEST_TIMEOUT: float = 30
    OPENAPI_FETCH_TIMEOUT: float = 15

    # Post-response scripts are stopped after whichever limit is hit first
    SCRIPT_TIMEOUT: float = 5.0
    SCRIPT_MAX_STEPS: int = 100_000

    model_config = {"env_file": ".env", "extra": "ignore"}


def _apply_path_overrides(settings: Settings) -> Settings:
    db_path = os.getenv("RESTBENCH_DB_PATH")
    if db_path:
        path = Path(db_path).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        settings.DATABASE_URL = f"sqlite:///{path.as_posix()}"
        return settings

    data_dir = os.getenv("RESTBENCH_DATA_DIR")
    if data_dir:
        path = Path(data_dir).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        settings.DATABASE_URL = f"sqlite:///{(path / 'restbench.db').as_posix()}"
    return settings


@lru_cache
def get_settings() -> Settings:
    return _apply_path_overrides(Settings())
