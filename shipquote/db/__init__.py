"""Database layer for the shipping engine."""

from shipquote.db.database import get_db_session, engine, SessionLocal
from shipquote.db.models import Base, Product, Order, ShippingLogEntry, QuoteCacheEntry
from shipquote.db.repository import (
    ProductRepository,
    OrderRepository,
    QuoteCacheRepository,
)
from shipquote.db.migrations import run_migrations, get_current_revision

__all__ = [
    # Database
    "get_db_session",
    "engine",
    "SessionLocal",
    # Models
    "Base",
    "Product",
    "Order",
    "ShippingLogEntry",
    "QuoteCacheEntry",
    # Repositories
    "ProductRepository",
    "OrderRepository",
    "QuoteCacheRepository",
    # Migrations
    "run_migrations",
    "get_current_revision",
]
