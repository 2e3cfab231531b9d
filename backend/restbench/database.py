import logging
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Build an engine for ``database_url``.

    File-backed SQLite databases get their parent directory created. An
    in-memory SQLite URL shares one connection so every session sees the
    same database.
    """
    if database_url.startswith("sqlite"):
        db_path = database_url.replace("sqlite:///", "", 1)
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                "sqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo,
            )
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},  # SQLite-specific
            echo=echo,
        )
    return create_engine(database_url, echo=echo)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    # Registers every table on Base.metadata
    import restbench.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
