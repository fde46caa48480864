"""Tests for the mock EasyPost client."""

import pytest

from shipquote.addresses import Address
from shipquote.easypost_client import Parcel, PurchaseError, ShipmentError
from shipquote.errors import MissingFieldsError
from shipquote.mock import CARRIERS, MockEasyPostClient

ORIGIN = Address(line1="100 Warehouse Way", city="Punta Gorda", state="FL", postal_code="33982")
WEST = Address(line1="456 Oak Avenue", city="Los Angeles", state="CA", postal_code="90001")
EAST = Address(line1="1 Broadway", city="New York", state="NY", postal_code="10004")
PARCEL = Parcel(length=12, width=9, height=4, weight=32)


@pytest.fixture
def client():
    return MockEasyPostClient()


class TestMockRates:
    """Tests for generated rates."""

    def test_one_rate_per_carrier_service(self, client):
        quote = client.get_rates(WEST, ORIGIN, PARCEL)
        assert quote.shipment_id.startswith("shp_")
        assert len(quote.rates) == len(CARRIERS)

    def test_rates_sorted_and_priced(self, client):
        amounts = [r.amount for r in client.get_rates(WEST, ORIGIN, PARCEL).rates]
        assert amounts == sorted(amounts)
        assert all(a > 0 for a in amounts)

    def test_distance_affects_price(self, client):
        west = min(r.amount for r in client.get_rates(WEST, ORIGIN, PARCEL).rates)
        east = min(r.amount for r in client.get_rates(EAST, ORIGIN, PARCEL).rates)
        assert west > east

    def test_smart_rate_fields(self, client):
        rate = client.get_rates(WEST, ORIGIN, PARCEL).rates[0]
        assert rate.delivery_confidence == pytest.approx(90)
        assert rate.time_in_transit["percentile_75"] == rate.delivery_days

    def test_without_smart_rates(self, client):
        rate = client.get_rates(WEST, ORIGIN, PARCEL, with_smart_rates=False).rates[0]
        assert rate.delivery_confidence is None

    def test_validates_inputs(self, client):
        with pytest.raises(MissingFieldsError):
            client.get_rates(Address(city="Nowhere"), ORIGIN, PARCEL)


class TestMockPurchase:
    """Tests for buying and forms against remembered shipments."""

    def test_buy_created_shipment(self, client):
        quote = client.create_shipment(WEST, ORIGIN, PARCEL, reference="FAS-1")
        rate = quote.rates[0]
        label = client.buy(quote.shipment_id, rate.rate_id)
        assert label.shipment_id == quote.shipment_id
        assert label.rate_id == rate.rate_id
        assert label.cost == rate.amount
        assert label.tracking_number
        assert label.label_url.endswith(".pdf")
        assert client.shipments[quote.shipment_id]["reference"] == "FAS-1"

    def test_buy_unknown_shipment(self, client):
        with pytest.raises(ShipmentError):
            client.buy("shp_missing", "rate_1")

    def test_buy_unknown_rate(self, client):
        quote = client.create_shipment(WEST, ORIGIN, PARCEL)
        with pytest.raises(PurchaseError):
            client.buy(quote.shipment_id, "rate_missing")

    def test_generate_form(self, client):
        quote = client.create_shipment(WEST, ORIGIN, PARCEL)
        url = client.generate_form(quote.shipment_id, "label_qr_code")
        assert url.endswith("label_qr_code.pdf")
        assert client.shipments[quote.shipment_id]["forms"][0]["form_type"] == "label_qr_code"
