"""Repository classes for data access."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shipquote.db.models import Product, Order, ShippingLogEntry, QuoteCacheEntry


class ProductRepository:
    """Repository for product data access."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, id: str) -> Product | None:
        return self.db.query(Product).filter(Product.id == id).first()

    def find_by_keys(
        self,
        skus: list[str],
        ids: list[str],
        titles: list[str],
    ) -> list[Product]:
        """Fetch every product matching any of the keys in a single query."""
        clauses = []
        if skus:
            clauses.append(Product.sku.in_(skus))
        if ids:
            clauses.append(Product.id.in_(ids))
        if titles:
            clauses.append(Product.title.in_(titles))
        if not clauses:
            return []
        return self.db.query(Product).filter(or_(*clauses)).all()

    def create(self, data: dict[str, Any]) -> Product:
        product = Product(**data)
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product


class OrderRepository:
    """Repository for order data access."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, id: UUID) -> Order | None:
        """Get order by ID."""
        return self.db.query(Order).filter(Order.id == id).first()

    def get_by_number(self, order_number: str) -> Order | None:
        return self.db.query(Order).filter(Order.order_number == order_number).first()

    def create(self, data: dict[str, Any]) -> Order:
        """Create a new order."""
        order = Order(**data)
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def record_label(self, id: UUID, data: dict[str, Any]) -> Order | None:
        """Write the label outcome and set label_purchased in one commit."""
        order = self.get_by_id(id)
        if not order:
            return None
        for key, value in data.items():
            setattr(order, key, value)
        order.label_purchased = True
        order.fulfillment_status = "label_created"
        order.fulfillment_error = None
        order.fulfillment_attempts = (order.fulfillment_attempts or 0) + 1
        order.updated_at = datetime.utcnow()
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)
        return order

    def mark_label_unsaved(self, id: UUID, shipment_id: str, message: str) -> None:
        """Flag a paid label whose details could not be stored.

        Sets label_purchased so later attempts never buy again.
        """
        order = self.get_by_id(id)
        if order:
            order.label_purchased = True
            order.shipment_id = shipment_id
            order.fulfillment_status = "label_purchased_unsaved"
            order.fulfillment_error = message
            order.fulfillment_attempts = (order.fulfillment_attempts or 0) + 1
            order.updated_at = datetime.utcnow()
            self.db.commit()

    def mark_label_failure(self, id: UUID, message: str) -> None:
        """Store the last failed attempt without touching label fields."""
        order = self.get_by_id(id)
        if order:
            order.fulfillment_status = "label_creation_failed"
            order.fulfillment_error = message
            order.fulfillment_attempts = (order.fulfillment_attempts or 0) + 1
            order.updated_at = datetime.utcnow()
            self.db.commit()

    def set_artifact_urls(self, id: UUID, **urls: str | None) -> None:
        """Patch side artifact URLs (packing_slip_url, qr_code_url, label_archive_url)."""
        order = self.get_by_id(id)
        if order:
            for key, value in urls.items():
                if value:
                    setattr(order, key, value)
            order.updated_at = datetime.utcnow()
            self.db.commit()

    def append_log_entry(
        self,
        id: UUID,
        status: str,
        message: str | None = None,
        tracking_number: str | None = None,
        label_url: str | None = None,
    ) -> ShippingLogEntry:
        """Append a shipping event for an order."""
        entry = ShippingLogEntry(
            order_id=id,
            status=status,
            message=message,
            tracking_number=tracking_number,
            label_url=label_url,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def list_log_entries(self, id: UUID) -> list[ShippingLogEntry]:
        return (
            self.db.query(ShippingLogEntry)
            .filter(ShippingLogEntry.order_id == id)
            .order_by(ShippingLogEntry.created_at)
            .all()
        )


class QuoteCacheRepository:
    """Repository for cached quotes."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_key(self, quote_key: str) -> QuoteCacheEntry | None:
        return self.db.query(QuoteCacheEntry).filter(QuoteCacheEntry.quote_key == quote_key).first()

    def upsert(self, quote_key: str, data: dict[str, Any]) -> QuoteCacheEntry:
        """Replace the entry for a key, inserting it when absent."""
        entry = self.get_by_key(quote_key)
        if entry is None:
            entry = QuoteCacheEntry(quote_key=quote_key, **data)
            self.db.add(entry)
            try:
                self.db.commit()
            except IntegrityError:
                # A concurrent writer inserted the same key first.
                self.db.rollback()
                entry = self.get_by_key(quote_key)
                for key, value in data.items():
                    setattr(entry, key, value)
                self.db.commit()
        else:
            for key, value in data.items():
                setattr(entry, key, value)
            self.db.commit()
        self.db.refresh(entry)
        return entry

