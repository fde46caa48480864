"""Resolve cart line items to product shipping profiles."""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from shipquote.addresses import first_non_empty, field as key

logger = logging.getLogger(__name__)

DRAFT_PREFIX = "drafts."

DIMENSIONS_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*[xX×]\s*(\d+(?:\.\d+)?)\s*[xX×]\s*(\d+(?:\.\d+)?)"
)

IDENTIFIER_EXTRACTORS = [key("identifier"), key("sku"), key("productId"), key("product_id"), key("id"), key("title"), key("name")]
SKU_EXTRACTORS = [key("sku")]
PRODUCT_ID_EXTRACTORS = [key("productId"), key("product_id"), key("id")]
TITLE_EXTRACTORS = [key("title"), key("name")]


def coerce_quantity(value: Any) -> int:
    """Non-finite, missing or non-positive quantities become 1."""
    try:
        qty = float(value)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(qty) or qty <= 0:
        return 1
    return max(1, int(round(qty)))


def positive_number(value: Any) -> float | None:
    """Return a positive finite float, or None when the value is unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def strip_draft_prefix(value: str) -> str:
    return value[len(DRAFT_PREFIX):] if value.startswith(DRAFT_PREFIX) else value


@dataclass
class Dimensions:
    length: float
    width: float
    height: float
    unit: str = "inch"

    def longest(self) -> float:
        return max(self.length, self.width, self.height)

    def to_dict(self) -> dict[str, Any]:
        return {"length": self.length, "width": self.width, "height": self.height, "unit": self.unit}


def parse_dimensions(value: Any) -> Dimensions | None:
    """Parse a structured {length,width,height} block or "LxWxH" text."""
    if isinstance(value, Mapping):
        length = positive_number(value.get("length"))
        width = positive_number(value.get("width"))
        height = positive_number(value.get("height"))
        if length and width and height:
            return Dimensions(length, width, height)
        return None
    if isinstance(value, str):
        match = DIMENSIONS_PATTERN.search(value)
        if not match:
            return None
        numbers = [positive_number(group) for group in match.groups()]
        if all(numbers):
            return Dimensions(*numbers)
    return None


@dataclass
class CartItem:
    identifier: str
    quantity: int = 1
    sku: str = ""
    product_id: str = ""
    title: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CartItem":
        return cls(
            identifier=first_non_empty(data, IDENTIFIER_EXTRACTORS),
            quantity=coerce_quantity(data.get("quantity", data.get("qty"))),
            sku=first_non_empty(data, SKU_EXTRACTORS),
            product_id=first_non_empty(data, PRODUCT_ID_EXTRACTORS),
            title=first_non_empty(data, TITLE_EXTRACTORS),
        )

    @property
    def sku_candidate(self) -> str:
        return self.sku or self.identifier

    @property
    def id_candidate(self) -> str:
        return strip_draft_prefix(self.product_id or self.identifier)

    @property
    def title_candidate(self) -> str:
        return self.title or self.identifier


def normalize_cart(items: list[CartItem | Mapping[str, Any]]) -> list[CartItem]:
    """Coerce raw items, drop blank identifiers, and merge duplicates.

    Quantities for the same identifier are summed; first-seen order is kept.
    """
    merged: dict[str, CartItem] = {}
    for raw in items:
        item = raw if isinstance(raw, CartItem) else CartItem.from_mapping(raw)
        if not item.identifier:
            continue
        item.quantity = coerce_quantity(item.quantity)
        if item.identifier in merged:
            merged[item.identifier].quantity += item.quantity
        else:
            merged[item.identifier] = CartItem(
                identifier=item.identifier,
                quantity=item.quantity,
                sku=item.sku,
                product_id=item.product_id,
                title=item.title,
            )
    return list(merged.values())


@dataclass
class LookupKeys:
    skus: list[str] = field(default_factory=list)
    ids: list[str] = field(default_factory=list)
    titles: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.skus or self.ids or self.titles)


def collect_lookup_keys(items: list[CartItem]) -> LookupKeys:
    """Union of every candidate key the cart references, for one batched fetch.

    Ids are collected both bare and with the draft prefix.
    """
    skus: set[str] = set()
    ids: set[str] = set()
    titles: set[str] = set()
    for item in items:
        if item.sku_candidate:
            skus.add(item.sku_candidate)
        if item.id_candidate:
            ids.add(item.id_candidate)
            ids.add(f"{DRAFT_PREFIX}{item.id_candidate}")
        if item.title_candidate:
            titles.add(item.title_candidate)
    return LookupKeys(skus=sorted(skus), ids=sorted(ids), titles=sorted(titles))


@dataclass
class ProductShippingProfile:
    id: str
    title: str = ""
    sku: str = ""
    weight: float | None = None
    dimensions: Dimensions | None = None
    ships_alone: bool = False
    shipping_class: str = ""
    requires_shipping: bool = True

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "ProductShippingProfile":
        """Build a profile; the structured shippingConfig block wins over legacy fields."""
        config = doc.get("shippingConfig") or {}
        if not isinstance(config, Mapping):
            config = {}

        weight = positive_number(config.get("weight"))
        if weight is None:
            weight = positive_number(doc.get("shippingWeight"))

        dimensions = parse_dimensions(config.get("dimensions"))
        if dimensions is None:
            dimensions = parse_dimensions(doc.get("boxDimensions"))

        shipping_class = config.get("shippingClass") or doc.get("shippingClass") or ""

        ships_alone = config.get("separateShipment")
        if ships_alone is None:
            ships_alone = doc.get("shipsAlone", False)

        requires_shipping = config.get("requiresShipping")
        if requires_shipping is None:
            product_type = str(doc.get("productType") or "").strip().lower()
            requires_shipping = product_type != "service"

        return cls(
            id=str(doc.get("id") or doc.get("_id") or ""),
            title=str(doc.get("title") or "").strip(),
            sku=str(doc.get("sku") or "").strip(),
            weight=weight,
            dimensions=dimensions,
            ships_alone=bool(ships_alone),
            shipping_class=str(shipping_class).strip(),
            requires_shipping=bool(requires_shipping),
        )


@dataclass
class ResolvedItem:
    item: CartItem
    profile: ProductShippingProfile


@dataclass
class Resolution:
    resolved: list[ResolvedItem] = field(default_factory=list)
    missing_products: list[str] = field(default_factory=list)


def resolve_cart(
    items: list[CartItem],
    profiles: list[ProductShippingProfile],
) -> Resolution:
    """Match each item by SKU, then id, then title.

    Unmatched items are reported in missing_products and left out of planning.
    """
    by_sku: dict[str, ProductShippingProfile] = {}
    by_id: dict[str, ProductShippingProfile] = {}
    by_title: dict[str, ProductShippingProfile] = {}
    for profile in profiles:
        if profile.sku:
            by_sku.setdefault(profile.sku, profile)
        if profile.id:
            # Published documents shadow their drafts.
            bare_id = strip_draft_prefix(profile.id)
            if bare_id not in by_id or not profile.id.startswith(DRAFT_PREFIX):
                by_id[bare_id] = profile
        if profile.title:
            by_title.setdefault(profile.title, profile)

    result = Resolution()
    for item in items:
        profile = (
            by_sku.get(item.sku_candidate.strip())
            or by_id.get(item.id_candidate.strip())
            or by_title.get(item.title_candidate.strip())
        )
        if profile is None:
            logger.warning("No product found for cart item %r", item.identifier)
            result.missing_products.append(item.identifier)
            continue
        result.resolved.append(ResolvedItem(item=item, profile=profile))
    return result
