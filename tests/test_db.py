"""Tests for database layer."""

import uuid
from datetime import datetime

import pytest

from shipquote.db.models import Order, QuoteCacheEntry
from shipquote.db.repository import QuoteCacheRepository
from shipquote.db.seed import DEMO_ORDERS, DEMO_PRODUCTS, has_demo_data, seed_demo_data


@pytest.fixture
def sample_order(order_repo):
    """Create a sample order for testing."""
    return order_repo.create({
        "order_number": "#1001",
        "customer_name": "John Doe",
        "customer_email": "john@example.com",
        "shipping_address": {
            "addressLine1": "123 Main St",
            "city": "Los Angeles",
            "state": "CA",
            "postalCode": "90001",
        },
        "cart": [{"sku": "X", "quantity": 1}],
    })


class TestProductRepository:
    """Tests for ProductRepository."""

    def test_find_by_keys_single_query(self, product_repo, catalog):
        """Products matching any key kind are returned together."""
        found = product_repo.find_by_keys(["X"], ["prod-y"], ["Injectors"])
        assert {p.id for p in found} == {"prod-x", "prod-y", "prod-solo-a"}

    def test_find_by_keys_empty(self, product_repo, catalog):
        """No keys means no lookup."""
        assert product_repo.find_by_keys([], [], []) == []

    def test_to_document(self, product_repo, catalog):
        """Stored products expose camelCase documents."""
        doc = product_repo.get_by_id("prod-x").to_document()
        assert doc["sku"] == "X"
        assert doc["shippingConfig"]["weight"] == 10
        assert doc["shipsAlone"] is False


class TestOrderRepository:
    """Tests for OrderRepository."""

    def test_create_defaults(self, sample_order):
        """New orders start unfulfilled with no label."""
        assert isinstance(sample_order.id, uuid.UUID)
        assert sample_order.label_purchased is False
        assert sample_order.fulfillment_status == "unfulfilled"
        assert sample_order.fulfillment_attempts == 0

    def test_get_by_id_and_number(self, order_repo, sample_order):
        """Orders can be found by UUID or order number."""
        assert order_repo.get_by_id(sample_order.id).order_number == "#1001"
        assert order_repo.get_by_number("#1001").id == sample_order.id
        assert order_repo.get_by_id(uuid.uuid4()) is None

    def test_record_label(self, order_repo, sample_order):
        """Recording a label sets every label field in one commit."""
        updated = order_repo.record_label(sample_order.id, {
            "shipment_id": "shp_1",
            "tracking_number": "1Z999",
            "label_url": "https://example.com/label.pdf",
            "label_cost": 8.5,
            "label_purchased_at": datetime(2026, 1, 15, 12, 0),
        })
        assert updated.label_purchased is True
        assert updated.fulfillment_status == "label_created"
        assert updated.fulfillment_attempts == 1
        assert updated.tracking_number == "1Z999"

    def test_record_label_missing_order(self, order_repo):
        """Unknown orders return None."""
        assert order_repo.record_label(uuid.uuid4(), {}) is None

    def test_mark_label_failure_keeps_label_fields(self, order_repo, sample_order):
        """A failed attempt only touches the fulfillment marker."""
        order_repo.mark_label_failure(sample_order.id, "Rate expired")
        order = order_repo.get_by_id(sample_order.id)
        assert order.fulfillment_status == "label_creation_failed"
        assert order.fulfillment_error == "Rate expired"
        assert order.fulfillment_attempts == 1
        assert order.label_purchased is False
        assert order.tracking_number is None

    def test_mark_label_unsaved_blocks_rebuy(self, order_repo, sample_order):
        """A paid but unsaved label still counts as purchased."""
        order_repo.mark_label_unsaved(sample_order.id, "shp_paid", "not saved")
        order = order_repo.get_by_id(sample_order.id)
        assert order.label_purchased is True
        assert order.shipment_id == "shp_paid"
        assert order.fulfillment_status == "label_purchased_unsaved"
        assert order.tracking_number is None

    def test_record_label_clears_previous_failure(self, order_repo, sample_order):
        """A later success clears the stored error."""
        order_repo.mark_label_failure(sample_order.id, "timeout")
        updated = order_repo.record_label(sample_order.id, {"tracking_number": "1Z1"})
        assert updated.fulfillment_error is None
        assert updated.fulfillment_attempts == 2

    def test_set_artifact_urls_skips_empty(self, order_repo, sample_order):
        """Only non-empty URLs are written."""
        order_repo.set_artifact_urls(sample_order.id, qr_code_url="https://example.com/qr.png", packing_slip_url=None)
        order = order_repo.get_by_id(sample_order.id)
        assert order.qr_code_url == "https://example.com/qr.png"
        assert order.packing_slip_url is None

    def test_shipping_log(self, order_repo, sample_order):
        """Log entries are appended and listed oldest first."""
        order_repo.append_log_entry(sample_order.id, "label_created", "first")
        order_repo.append_log_entry(sample_order.id, "in_transit", "second")
        entries = order_repo.list_log_entries(sample_order.id)
        assert [e.status for e in entries] == ["label_created", "in_transit"]
        assert entries[0].order_id == sample_order.id


class TestQuoteCacheRepository:
    """Tests for QuoteCacheRepository."""

    def test_upsert_insert_then_update(self, db_session):
        repo = QuoteCacheRepository(db_session)
        repo.upsert("a" * 64, {"rates": [{"rateId": "r1"}], "packages": []})
        updated = repo.upsert("a" * 64, {"rates": [{"rateId": "r2"}]})
        assert updated.rates == [{"rateId": "r2"}]
        assert db_session.query(QuoteCacheEntry).count() == 1

    def test_get_by_key_missing(self, db_session):
        assert QuoteCacheRepository(db_session).get_by_key("nope") is None


class TestSeed:
    """Tests for demo data seeding."""

    def test_seed_is_idempotent(self, db_session):
        """Seeding twice does not duplicate data."""
        assert not has_demo_data(db_session)
        seed_demo_data(db_session)
        seed_demo_data(db_session)
        assert has_demo_data(db_session)
        assert db_session.query(Order).count() == len(DEMO_ORDERS)

    def test_demo_catalog_covers_each_shape(self):
        """Demo products include structured, legacy, freight and install-only entries."""
        classes = {p.get("shipping_class") for p in DEMO_PRODUCTS}
        assert "Freight" in classes
        assert any(p.get("shipping_config") for p in DEMO_PRODUCTS)
        assert any(p.get("box_dimensions") for p in DEMO_PRODUCTS)
