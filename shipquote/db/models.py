"""SQLAlchemy models for products, orders, shipping log and quote cache."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    String,
    Integer,
    Float,
    DateTime,
    ForeignKey,
    Text,
    JSON,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.types import TypeDecorator, CHAR
from sqlalchemy.orm import DeclarativeBase, relationship


class UUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL's UUID type when available, otherwise stores as CHAR(32).
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(32))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value
        if isinstance(value, uuid.UUID):
            return value.hex
        return uuid.UUID(value).hex

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Product(Base):
    """Product document with its shipping metadata.

    Ids are document ids and may carry a "drafts." prefix.
    """

    __tablename__ = "products"

    id = Column(String(255), primary_key=True)
    title = Column(String(500), index=True)
    sku = Column(String(255), index=True)
    product_type = Column(String(50), default="physical")

    # Structured block: weight, dimensions, shippingClass, requiresShipping, separateShipment
    shipping_config = Column(JSON)

    # Legacy flat fields
    shipping_weight = Column(Float)
    box_dimensions = Column(String(100))
    ships_alone = Column(Boolean, default=False)
    shipping_class = Column(String(100))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "sku": self.sku,
            "productType": self.product_type,
            "shippingConfig": self.shipping_config,
            "shippingWeight": self.shipping_weight,
            "boxDimensions": self.box_dimensions,
            "shipsAlone": self.ships_alone,
            "shippingClass": self.shipping_class,
        }

    def __repr__(self) -> str:
        return f"<Product {self.sku or self.id} - {self.title}>"


class Order(Base):
    """Order with its label purchase and fulfillment state."""

    __tablename__ = "orders"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    order_number = Column(String(100), index=True)
    customer_name = Column(String(255))
    customer_email = Column(String(255))
    status = Column(String(50), default="paid")
    shipping_address = Column(JSON)
    cart = Column(JSON)

    # Optional stored parcel; planned from the cart when absent
    package_weight_lbs = Column(Float)
    package_dimensions = Column(JSON)

    # Label outcome. label_purchased is terminal once set.
    label_purchased = Column(Boolean, default=False, nullable=False)
    shipment_id = Column(String(255))
    tracker_id = Column(String(255))
    selected_rate_id = Column(String(255))
    tracking_number = Column(String(255))
    tracking_url = Column(Text)
    label_url = Column(Text)
    carrier = Column(String(100))
    service = Column(String(100))
    label_cost = Column(Float)
    label_currency = Column(String(3))
    label_purchased_at = Column(DateTime)

    fulfillment_status = Column(String(50), default="unfulfilled")
    fulfillment_error = Column(Text)
    fulfillment_attempts = Column(Integer, default=0, nullable=False)

    # Side artifacts
    packing_slip_url = Column(Text)
    qr_code_url = Column(Text)
    label_archive_url = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    shipping_log = relationship(
        "ShippingLogEntry",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ShippingLogEntry.created_at",
    )

    def __repr__(self) -> str:
        return f"<Order {self.order_number} - {self.fulfillment_status}>"


class ShippingLogEntry(Base):
    """Append-only shipping event for an order."""

    __tablename__ = "shipping_log_entries"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(100), nullable=False)
    message = Column(Text)
    tracking_number = Column(String(255))
    label_url = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="shipping_log")

    def __repr__(self) -> str:
        return f"<ShippingLogEntry {self.status} at {self.created_at}>"


class QuoteCacheEntry(Base):
    """Cached rate quote keyed by the canonical cart + destination hash."""

    __tablename__ = "shipping_quotes"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    quote_key = Column(String(64), unique=True, nullable=False)
    destination_fingerprint = Column(String(64))
    cart_fingerprint = Column(String(64))
    rates = Column(JSON)
    packages = Column(JSON)
    provider_shipment_id = Column(String(255))
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime)

    def __repr__(self) -> str:
        return f"<QuoteCacheEntry {self.quote_key[:12]} expires {self.expires_at}>"
