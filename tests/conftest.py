"""Shared fixtures for unit tests."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from shipquote.addresses import Address
from shipquote.config import EngineConfig
from shipquote.db.models import Base
from shipquote.db.repository import OrderRepository, ProductRepository
from shipquote.mock import MockEasyPostClient


ORIGIN = Address(
    name="Test Warehouse",
    phone="555-123-4567",
    line1="100 Warehouse Way",
    city="Punta Gorda",
    state="FL",
    postal_code="33982",
    country="US",
)

DESTINATION = {
    "addressLine1": "456 Oak Avenue",
    "city": "Los Angeles",
    "state": "CA",
    "postalCode": "90001",
    "country": "US",
}


class FakeClock:
    """Settable clock for cache expiry tests."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def db_engine():
    """Create in-memory SQLite database for testing."""
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(db_engine):
    """Create database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def config():
    """Engine config with fixed defaults, independent of the environment."""
    return EngineConfig(origin=ORIGIN)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_provider():
    """In-memory provider with inspectable shipments."""
    return MockEasyPostClient()


@pytest.fixture
def mock_client(mock_provider):
    """Mock provider wrapped so calls can be counted."""
    return MagicMock(wraps=mock_provider)


@pytest.fixture
def product_repo(db_session):
    """Create product repository."""
    return ProductRepository(db_session)


@pytest.fixture
def order_repo(db_session):
    """Create order repository."""
    return OrderRepository(db_session)


@pytest.fixture
def catalog(product_repo):
    """A small catalog covering each shipping metadata shape."""
    products = [
        {
            "id": "prod-x",
            "title": "Intake Kit",
            "sku": "X",
            "shipping_config": {
                "weight": 10,
                "dimensions": {"length": 20, "width": 10, "height": 8},
            },
        },
        {"id": "prod-y", "title": "Pulley", "sku": "Y", "shipping_weight": 2, "box_dimensions": "8x6x4"},
        {"id": "prod-solo-a", "title": "Injectors", "sku": "SOLO-A", "shipping_weight": 4,
         "box_dimensions": "14x10x6", "ships_alone": True},
        {"id": "prod-solo-b", "title": "Header Set", "sku": "SOLO-B", "shipping_weight": 9,
         "box_dimensions": "24x14x10", "ships_alone": True},
        {"id": "prod-freight", "title": "Engine Block", "sku": "FREIGHT", "shipping_weight": 20,
         "shipping_class": "freight"},
        {"id": "prod-install", "title": "Install Service", "sku": "INSTALL",
         "shipping_class": "Install Only"},
        {"id": "prod-tune", "title": "Dyno Tune", "sku": "TUNE", "product_type": "service"},
    ]
    return [product_repo.create(p) for p in products]
