"""Shared fixtures for integration tests."""

import os

# Set environment BEFORE any imports from shipquote
os.environ["MOCK_MODE"] = "1"
os.environ["DATABASE_URL"] = "sqlite:///./test_integration.db"

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from shipquote.addresses import Address
from shipquote.config import EngineConfig
from shipquote.db.models import Base, Order, Product, QuoteCacheEntry, ShippingLogEntry
from shipquote.db.repository import OrderRepository, ProductRepository
from shipquote.mock import MockEasyPostClient


SHIPPING_ADDRESS = {
    "addressLine1": "456 Oak Avenue",
    "city": "Los Angeles",
    "state": "CA",
    "postalCode": "90001",
    "country": "US",
}


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Set up test database once for the entire test session."""
    engine = create_engine(
        "sqlite:///./test_integration.db",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    # Cleanup after all tests
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    import pathlib
    pathlib.Path("test_integration.db").unlink(missing_ok=True)


@pytest.fixture(scope="function")
def db_session(setup_test_database):
    """Create database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=setup_test_database)
    session = SessionLocal()

    # Clean up any existing data before each test
    session.query(ShippingLogEntry).delete()
    session.query(Order).delete()
    session.query(QuoteCacheEntry).delete()
    session.query(Product).delete()
    session.commit()

    yield session

    session.rollback()
    session.close()


@pytest.fixture
def provider():
    """Mock provider shared by every request in a test, with call counting."""
    return MagicMock(wraps=MockEasyPostClient())


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(origin=Address(
        name="Test Warehouse",
        phone="555-123-4567",
        line1="100 Warehouse Way",
        city="Punta Gorda",
        state="FL",
        postal_code="33982",
    ))


@pytest.fixture(scope="function")
def test_client(db_session, provider, engine_config):
    """Create FastAPI TestClient with test database and provider."""
    # Import here to ensure DATABASE_URL is set
    from shipquote.server import app
    from shipquote.api.deps import get_db, get_easypost_client, get_engine_config

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_easypost_client] = lambda: provider
    app.dependency_overrides[get_engine_config] = lambda: engine_config

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def order_repo(db_session):
    """Create order repository."""
    return OrderRepository(db_session)


@pytest.fixture
def sample_products(db_session):
    """Create a small catalog."""
    repo = ProductRepository(db_session)
    return [
        repo.create({"id": "prod-x", "title": "Intake Kit", "sku": "X", "shipping_weight": 10,
                     "box_dimensions": "20x10x8"}),
        repo.create({"id": "prod-y", "title": "Pulley", "sku": "Y", "shipping_weight": 2,
                     "box_dimensions": "8x6x4"}),
        repo.create({"id": "prod-freight", "title": "Engine Block", "sku": "FREIGHT",
                     "shipping_weight": 420, "shipping_class": "Freight"}),
        repo.create({"id": "prod-install", "title": "Install", "sku": "INSTALL",
                     "shipping_class": "Install Only"}),
    ]


@pytest.fixture
def sample_order(order_repo, sample_products) -> Order:
    """Create an order awaiting a label."""
    return order_repo.create({
        "order_number": "FAS-1001",
        "customer_name": "Alice Johnson",
        "customer_email": "alice@example.com",
        "shipping_address": SHIPPING_ADDRESS,
        "cart": [{"sku": "X", "quantity": 1}, {"sku": "Y", "quantity": 2}],
    })
