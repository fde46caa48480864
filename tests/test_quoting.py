"""Tests for cart quoting end to end against the mock provider."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from shipquote.easypost_client import RateError, RateQuote
from shipquote.errors import ErrorCode, MissingFieldsError, QuoteInputError
from shipquote.metadata import Dimensions
from shipquote.quoting import QuoteService

DESTINATION = {
    "addressLine1": "456 Oak Avenue",
    "city": "Los Angeles",
    "state": "CA",
    "postalCode": "90001",
}


@pytest.fixture
def service(db_session, mock_client, config, clock, catalog):
    return QuoteService(db_session, mock_client, config, clock=clock)


class TestQuoteValidation:
    """Tests for input checks that run before any provider call."""

    def test_empty_cart(self, service, mock_client):
        with pytest.raises(QuoteInputError) as exc_info:
            service.quote([], DESTINATION)
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
        mock_client.get_rates.assert_not_called()

    def test_incomplete_destination(self, service, mock_client):
        with pytest.raises(MissingFieldsError) as exc_info:
            service.quote([{"sku": "X"}], {"city": "Los Angeles", "state": "CA"})
        assert exc_info.value.code == ErrorCode.INCOMPLETE_ADDRESS
        assert exc_info.value.missing_fields == ["addressLine1", "postalCode"]
        mock_client.get_rates.assert_not_called()


class TestFreshQuote:
    """Tests for quotes fetched from the provider."""

    def test_combined_package_is_quoted(self, service, mock_client):
        result = service.quote([{"sku": "X", "quantity": 2}, {"sku": "Y", "quantity": 1}], DESTINATION)
        assert result.cache_source == "fresh"
        assert not result.freight
        assert len(result.packages) == 1
        assert result.packages[0].weight_value == 22
        assert result.packages[0].dimensions == Dimensions(20, 10, 8)

        parcel = mock_client.get_rates.call_args.args[2]
        assert parcel.weight == 22 * 16
        assert parcel.length == 20

        amounts = [r.amount for r in result.rates]
        assert amounts == sorted(amounts)
        assert result.best_rate is not None

    def test_solo_items_add_packages(self, service):
        result = service.quote([{"sku": "X"}, {"sku": "SOLO-A"}, {"sku": "SOLO-B", "quantity": 2}], DESTINATION)
        assert len(result.packages) == 4
        assert result.packages[0].origin_item_ref is None

    def test_unresolved_items_are_reported(self, service):
        result = service.quote([{"sku": "X"}, {"sku": "UNKNOWN"}], DESTINATION)
        assert result.missing_products == ["UNKNOWN"]
        assert result.rates

    def test_all_unresolved_quotes_default_parcel(self, service, mock_client):
        result = service.quote([{"sku": "UNKNOWN"}], DESTINATION)
        assert result.packages[0].weight_value == 5.0
        assert mock_client.get_rates.call_count == 1

    def test_string_destination(self, service):
        result = service.quote([{"sku": "Y"}], "Jane Doe\n456 Oak Avenue\nLos Angeles, CA 90001")
        assert result.rates

    def test_provider_error_propagates(self, db_session, config, clock, catalog):
        client = MagicMock()
        client.get_rates.side_effect = RateError("down", ErrorCode.EASYPOST_RATE_ERROR)
        service = QuoteService(db_session, client, config, clock=clock)
        with pytest.raises(RateError):
            service.quote([{"sku": "X"}], DESTINATION)

    def test_empty_rates_are_not_cached(self, db_session, config, clock, catalog):
        client = MagicMock()
        client.get_rates.return_value = RateQuote(shipment_id="shp_empty", rates=[])
        service = QuoteService(db_session, client, config, clock=clock)
        first = service.quote([{"sku": "X"}], DESTINATION)
        second = service.quote([{"sku": "X"}], DESTINATION)
        assert first.rates == [] and first.best_rate is None
        assert second.cache_source == "fresh"
        assert client.get_rates.call_count == 2


class TestCachedQuote:
    """Tests for cache hits and expiry."""

    def test_second_quote_uses_cache(self, service, mock_client):
        cart = [{"sku": "X", "quantity": 2}, {"sku": "Y", "quantity": 1}]
        first = service.quote(cart, DESTINATION)
        second = service.quote(list(reversed(cart)), {**DESTINATION, "state": " ca "})

        assert second.cache_source == "cache"
        assert second.quote_key == first.quote_key
        assert [r.rate_id for r in second.rates] == [r.rate_id for r in first.rates]
        assert second.best_rate.rate_id == first.best_rate.rate_id
        assert second.packages == first.packages
        assert mock_client.get_rates.call_count == 1

    def test_expired_cache_refetches(self, service, mock_client, clock):
        service.quote([{"sku": "X"}], DESTINATION)
        clock.now += timedelta(seconds=901)
        result = service.quote([{"sku": "X"}], DESTINATION)
        assert result.cache_source == "fresh"
        assert mock_client.get_rates.call_count == 2

    def test_different_cart_misses(self, service, mock_client):
        service.quote([{"sku": "X"}], DESTINATION)
        service.quote([{"sku": "X", "quantity": 2}], DESTINATION)
        assert mock_client.get_rates.call_count == 2

    def test_partial_cache_record_gets_fresh_quote(self, service, mock_client, db_session):
        from shipquote.db.repository import QuoteCacheRepository

        first = service.quote([{"sku": "X"}], DESTINATION)
        QuoteCacheRepository(db_session).upsert(first.quote_key, {
            "rates": [{"carrier": "USPS"}],
            "packages": [{}],
        })
        result = service.quote([{"sku": "X"}], DESTINATION)
        assert result.cache_source == "fresh"
        assert result.best_rate is not None
        assert mock_client.get_rates.call_count == 2

    def test_unpriced_cached_rate_is_not_served(self, service, mock_client, db_session):
        from shipquote.db.repository import QuoteCacheRepository

        first = service.quote([{"sku": "X"}], DESTINATION)
        cached = [r.to_dict() for r in first.rates]
        cached[0]["amount"] = 0
        QuoteCacheRepository(db_session).upsert(first.quote_key, {"rates": cached})
        result = service.quote([{"sku": "X"}], DESTINATION)
        assert result.cache_source == "cache"
        assert all(r.amount > 0 for r in result.rates)
        assert first.rates[0].rate_id not in [r.rate_id for r in result.rates]


class TestEarlyReturns:
    """Tests for freight and install-only carts."""

    def test_freight_class_skips_rates(self, service, mock_client):
        result = service.quote([{"sku": "X"}, {"sku": "FREIGHT"}], DESTINATION)
        assert result.freight
        assert result.freight_reason == "shipping_class"
        assert result.rates == []
        assert result.packages == []
        assert "Freight" in result.message
        mock_client.get_rates.assert_not_called()

    def test_heavy_quantity_is_freight(self, service):
        result = service.quote([{"sku": "X", "quantity": 15}], DESTINATION)
        assert result.freight
        assert result.freight_reason == "total_weight"

    def test_install_only_cart(self, service, mock_client):
        result = service.quote([{"sku": "INSTALL"}, {"sku": "TUNE"}], DESTINATION)
        assert result.install_only
        assert result.rates == []
        assert result.install_only_items == ["INSTALL", "TUNE"]
        mock_client.get_rates.assert_not_called()

    def test_install_items_ride_along(self, service):
        result = service.quote([{"sku": "INSTALL"}, {"sku": "Y"}], DESTINATION)
        assert not result.install_only
        assert result.install_only_items == ["INSTALL"]
        assert result.packages[0].weight_value == 2
