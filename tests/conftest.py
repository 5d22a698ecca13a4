# 1. Standard Library
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from typing import Any

# 2. Third-Party Libraries
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

# 3. Application Layers
from app.api.main import app
from app.api.routes import get_cache
from app.core.cache import ResponseCache
from app.data_access import models  # noqa: F401  (registers the tables)
from app.data_access.database import get_session
from app.data_access.models import Transaction, TransactionTag


# --- Setup: Isolated Testing Environment ---

@pytest.fixture(name="engine")
def engine_fixture() -> Generator[Engine, Any, None]:
    """A clean in-memory SQLite database shared across threads for every test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine: Engine) -> Generator[Session, Any, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture(name="cache")
def cache_fixture() -> ResponseCache:
    return ResponseCache(default_ttl=60, check_period=120)


@pytest.fixture(name="client")
def client_fixture(session: Session, cache: ResponseCache) -> Generator[TestClient, Any, None]:
    """TestClient wired to the test database and a fresh cache.

    The lifespan is not entered, so no real database or sweeper is started.
    """
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()


def build_transaction(index: int = 0, **overrides: Any) -> Transaction:
    """A valid transaction row; `index` spreads dates one day apart from 2023-01-01."""
    tags = overrides.pop("tags", [])
    data: dict[str, Any] = {
        "customer_id": f"CUST-{index:04d}",
        "customer_name": f"Customer {index}",
        "phone_number": f"98765{index:05d}",
        "gender": "Male",
        "age": 30,
        "region": "North",
        "product_id": f"PROD-{index:04d}",
        "product_name": "Notebook",
        "category": "Stationery",
        "quantity": 1,
        "price_per_unit": 100.0,
        "total_amount": 100.0,
        "final_amount": 100.0,
        "date": datetime(2023, 1, 1, tzinfo=UTC) + timedelta(days=index),
        "payment_method": "UPI",
    }
    data.update(overrides)
    tx = Transaction(**data)
    tx.tag_links = [TransactionTag(tag=tag) for tag in tags]
    return tx


@pytest.fixture(name="add_transactions")
def add_transactions_fixture(session: Session) -> Callable[..., list[Transaction]]:
    """Inserts transactions built by `build_transaction` and returns them."""

    def _add(*rows: Transaction) -> list[Transaction]:
        session.add_all(rows)
        session.commit()
        for row in rows:
            session.refresh(row)
        return list(rows)

    return _add
