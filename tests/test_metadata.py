"""Tests for cart normalization and product resolution."""

import math

import pytest

from shipquote.metadata import (
    CartItem,
    Dimensions,
    ProductShippingProfile,
    coerce_quantity,
    collect_lookup_keys,
    normalize_cart,
    parse_dimensions,
    resolve_cart,
)


class TestQuantity:
    """Tests for quantity coercion."""

    @pytest.mark.parametrize("raw,expected", [
        (None, 1),
        ("abc", 1),
        (0, 1),
        (-3, 1),
        (math.nan, 1),
        (math.inf, 1),
        (2, 2),
        ("3", 3),
        (2.6, 3),
        (0.4, 1),
    ])
    def test_coerce_quantity(self, raw, expected):
        assert coerce_quantity(raw) == expected


class TestParseDimensions:
    """Tests for structured and legacy dimension parsing."""

    def test_structured_block(self):
        dims = parse_dimensions({"length": 12, "width": "9", "height": 4.5})
        assert dims == Dimensions(12.0, 9.0, 4.5)

    def test_structured_block_with_missing_side(self):
        assert parse_dimensions({"length": 12, "width": 9}) is None

    @pytest.mark.parametrize("text", ["12x9x4", "12 X 9 X 4", "12 × 9 × 4", "Box: 12x9x4 in"])
    def test_legacy_text(self, text):
        assert parse_dimensions(text) == Dimensions(12.0, 9.0, 4.0)

    def test_garbage_text(self):
        assert parse_dimensions("large box") is None

    def test_zero_side_rejected(self):
        assert parse_dimensions("12x0x4") is None


class TestCartItem:
    """Tests for cart item identity."""

    def test_identifier_precedence(self):
        item = CartItem.from_mapping({"sku": "SKU-1", "productId": "p1", "title": "Thing"})
        assert item.identifier == "SKU-1"

    def test_falls_back_to_product_id_then_title(self):
        assert CartItem.from_mapping({"productId": "p1", "title": "Thing"}).identifier == "p1"
        assert CartItem.from_mapping({"title": "Thing"}).identifier == "Thing"

    def test_explicit_identifier_used_for_every_match_kind(self):
        item = CartItem.from_mapping({"identifier": "drafts.abc"})
        assert item.sku_candidate == "drafts.abc"
        assert item.id_candidate == "abc"
        assert item.title_candidate == "drafts.abc"

    def test_normalize_merges_duplicates(self):
        items = normalize_cart([
            {"sku": "X", "quantity": 2},
            {"sku": "Y"},
            {"sku": "X", "quantity": 1},
            {"title": "  "},
        ])
        assert [(i.identifier, i.quantity) for i in items] == [("X", 3), ("Y", 1)]

    def test_lookup_keys_are_one_batch(self):
        keys = collect_lookup_keys(normalize_cart([{"sku": "X"}, {"productId": "p1"}]))
        assert "X" in keys.skus
        assert "p1" in keys.ids
        assert "drafts.p1" in keys.ids
        assert not keys.is_empty()


class TestProductShippingProfile:
    """Tests for profile building from product documents."""

    def test_structured_config_wins(self):
        profile = ProductShippingProfile.from_document({
            "id": "p1",
            "shippingConfig": {
                "weight": 3,
                "dimensions": {"length": 10, "width": 8, "height": 2},
                "shippingClass": "standard",
                "separateShipment": True,
            },
            "shippingWeight": 99,
            "boxDimensions": "50x50x50",
            "shippingClass": "freight",
            "shipsAlone": False,
        })
        assert profile.weight == 3
        assert profile.dimensions == Dimensions(10, 8, 2)
        assert profile.shipping_class == "standard"
        assert profile.ships_alone is True

    def test_legacy_fields_used_when_structured_missing(self):
        profile = ProductShippingProfile.from_document({
            "id": "p1",
            "shippingConfig": {"weight": None},
            "shippingWeight": "4.5",
            "boxDimensions": "14x10x6",
            "shipsAlone": True,
        })
        assert profile.weight == 4.5
        assert profile.dimensions == Dimensions(14, 10, 6)
        assert profile.ships_alone is True

    def test_invalid_weight_is_unknown(self):
        profile = ProductShippingProfile.from_document({"id": "p1", "shippingWeight": -2})
        assert profile.weight is None

    def test_service_products_do_not_ship(self):
        profile = ProductShippingProfile.from_document({"id": "p1", "productType": "Service"})
        assert profile.requires_shipping is False

    def test_explicit_requires_shipping_wins(self):
        profile = ProductShippingProfile.from_document({
            "id": "p1",
            "productType": "service",
            "shippingConfig": {"requiresShipping": True},
        })
        assert profile.requires_shipping is True


class TestResolveCart:
    """Tests for SKU, id and title resolution."""

    @pytest.fixture
    def profiles(self):
        return [
            ProductShippingProfile(id="p-sku", sku="SKU-1", title="Same Title"),
            ProductShippingProfile(id="p-other", sku="SKU-2", title="Other"),
            ProductShippingProfile(id="drafts.p-draft", title="Draft Only"),
            ProductShippingProfile(id="p-title", title="Title Match"),
        ]

    def test_sku_beats_title(self, profiles):
        result = resolve_cart(normalize_cart([{"identifier": "SKU-1"}]), profiles)
        assert result.resolved[0].profile.id == "p-sku"

    def test_id_with_draft_prefix(self, profiles):
        result = resolve_cart(normalize_cart([{"productId": "drafts.p-other"}]), profiles)
        assert result.resolved[0].profile.id == "p-other"

    def test_draft_document_matches_bare_id(self, profiles):
        result = resolve_cart(normalize_cart([{"productId": "p-draft"}]), profiles)
        assert result.resolved[0].profile.id == "drafts.p-draft"

    def test_title_match(self, profiles):
        result = resolve_cart(normalize_cart([{"title": "Title Match"}]), profiles)
        assert result.resolved[0].profile.id == "p-title"

    def test_unresolved_is_diagnostic_not_error(self, profiles):
        result = resolve_cart(normalize_cart([{"sku": "SKU-1"}, {"sku": "NOPE"}]), profiles)
        assert len(result.resolved) == 1
        assert result.missing_products == ["NOPE"]
