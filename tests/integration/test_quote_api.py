"""Integration tests for the quote and health endpoints."""

DESTINATION = {
    "addressLine1": "456 Oak Avenue",
    "city": "Los Angeles",
    "state": "CA",
    "postalCode": "90001",
}


class TestHealthEndpoint:
    """Tests for health check endpoint."""

    def test_health_returns_ok(self, test_client):
        """Test that health endpoint returns OK."""
        response = test_client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["mock_mode"] is True  # Tests run in mock mode


class TestQuoteEndpoint:
    """Tests for POST /api/shipping/quote."""

    def test_quote_returns_ranked_rates(self, test_client, sample_products):
        """A parcel cart returns rates, a best rate and the planned package."""
        response = test_client.post("/api/shipping/quote", json={
            "cart": [{"sku": "X", "quantity": 2}, {"sku": "Y"}],
            "destination": DESTINATION,
        })
        assert response.status_code == 200
        data = response.json()

        assert data["freight"] is False
        assert data["cacheSource"] == "fresh"
        amounts = [r["amount"] for r in data["rates"]]
        assert amounts == sorted(amounts)
        assert data["bestRate"]["rateId"] in {r["rateId"] for r in data["rates"]}
        assert data["packages"][0]["weightValue"] == 22
        assert data["packages"][0]["dimensions"]["length"] == 20

    def test_repeat_quote_served_from_cache(self, test_client, sample_products, provider):
        """Reordered cart and reformatted address hit the cache without a provider call."""
        first = test_client.post("/api/shipping/quote", json={
            "cart": [{"sku": "X", "quantity": 2}, {"sku": "Y"}],
            "destination": DESTINATION,
        }).json()
        second = test_client.post("/api/shipping/quote", json={
            "cart": [{"sku": "Y"}, {"sku": "X", "quantity": 2}],
            "to": {**DESTINATION, "state": " ca ", "city": "LOS ANGELES"},
        }).json()

        assert second["cacheSource"] == "cache"
        assert second["quoteKey"] == first["quoteKey"]
        assert second["bestRate"] == first["bestRate"]
        assert provider.get_rates.call_count == 1

    def test_freight_cart(self, test_client, sample_products, provider):
        """Freight carts return the freight flag without rates."""
        response = test_client.post("/api/shipping/quote", json={
            "cart": [{"sku": "X"}, {"sku": "FREIGHT"}],
            "destination": DESTINATION,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["freight"] is True
        assert "rates" not in data
        assert "message" in data
        provider.get_rates.assert_not_called()

    def test_install_only_cart(self, test_client, sample_products):
        response = test_client.post("/api/shipping/quote", json={
            "cart": [{"sku": "INSTALL"}],
            "destination": DESTINATION,
        })
        data = response.json()
        assert data["installOnly"] is True
        assert data["installOnlyItems"] == ["INSTALL"]

    def test_unresolved_products_reported(self, test_client, sample_products):
        response = test_client.post("/api/shipping/quote", json={
            "cart": [{"sku": "X"}, {"sku": "NOT-A-PRODUCT"}],
            "destination": DESTINATION,
        })
        assert response.status_code == 200
        assert response.json()["missingProducts"] == ["NOT-A-PRODUCT"]

    def test_incomplete_destination(self, test_client, sample_products, provider):
        """Missing address fields are listed by their inbound names."""
        response = test_client.post("/api/shipping/quote", json={
            "cart": [{"sku": "X"}],
            "destination": {"addressLine1": "456 Oak Avenue", "city": "Los Angeles"},
        })
        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "VALIDATION_ERROR"
        assert detail["missingFields"] == ["state", "postalCode"]
        provider.get_rates.assert_not_called()

    def test_empty_cart(self, test_client):
        response = test_client.post("/api/shipping/quote", json={"cart": [], "destination": DESTINATION})
        assert response.status_code == 422

    def test_provider_failure(self, test_client, sample_products, provider):
        """Provider errors surface as 502 with the provider's code."""
        from shipquote.easypost_client import RateError

        provider.get_rates.side_effect = RateError("EasyPost unavailable", "EASYPOST_RATE_ERROR")
        response = test_client.post("/api/shipping/quote", json={
            "cart": [{"sku": "X"}],
            "destination": DESTINATION,
        })
        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "EASYPOST_RATE_ERROR"
