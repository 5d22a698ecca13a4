import logging
from collections.abc import Generator
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlmodel import Session, SQLModel, create_engine

from app.core.config import settings


logger = logging.getLogger(__name__)


def _connect_args(database_url: str, timeout: int) -> dict[str, Any]:
    """Driver-level timeouts so a hung store call cannot block a request forever."""
    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        # FastAPI serves sync routes from a thread pool
        return {"check_same_thread": False, "timeout": timeout}
    if backend == "postgresql":
        return {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        }
    return {}


def build_engine(database_url: str, timeout: int = 30) -> Engine:
    """Creates an engine with pre-ping and a bounded pool checkout."""
    kwargs: dict[str, Any] = {
        "pool_pre_ping": True,
        "connect_args": _connect_args(database_url, timeout),
    }
    if make_url(database_url).get_backend_name() != "sqlite":
        kwargs["pool_timeout"] = timeout
    return create_engine(database_url, **kwargs)


engine = build_engine(settings.DATABASE_URL, settings.DATABASE_TIMEOUT_SECONDS)


def create_db_and_tables(target: Engine | None = None) -> None:
    """Creates the transactions tables and their indexes if they don't exist.

    A store that cannot be reached is fatal: the error is logged and re-raised
    so the server does not start listening without a database.
    """
    # Imported for its side effect of registering the tables on SQLModel.metadata
    from app.data_access import models  # noqa: F401

    try:
        SQLModel.metadata.create_all(target or engine)
        logger.info("Transaction tables are ready.")
    except Exception as e:
        logger.error(f"Could not connect to the transaction store: {e}")
        raise


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency to provide a database session."""
    with Session(engine) as session:
        yield session
