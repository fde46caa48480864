"""Cart + destination quoting: resolve, plan, check cache, fetch and rank rates."""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from sqlalchemy.orm import Session

from shipquote.addresses import Address, coerce_address
from shipquote.config import EngineConfig
from shipquote.db.repository import ProductRepository, QuoteCacheRepository
from shipquote.easypost_client import Parcel, Rate
from shipquote.errors import ErrorCode, MissingFieldsError, QuoteInputError
from shipquote.metadata import (
    CartItem,
    ProductShippingProfile,
    Resolution,
    collect_lookup_keys,
    normalize_cart,
    resolve_cart,
)
from shipquote.packages import Package, PackagePlan, PackagePlanner
from shipquote.quote_cache import (
    Clock,
    QuoteCache,
    QuoteCacheRecord,
    build_quote_key,
    cart_fingerprint,
    destination_fingerprint,
    utcnow,
)
from shipquote.rate_selector import SelectionOptions, rank_rates, select_rate

logger = logging.getLogger(__name__)

FREIGHT_MESSAGE = "Freight required due to weight/dimensions or product class."
INSTALL_ONLY_MESSAGE = "Install-only items do not require shipping."


@dataclass
class QuoteResult:
    freight: bool = False
    install_only: bool = False
    rates: list[Rate] = field(default_factory=list)
    best_rate: Rate | None = None
    packages: list[Package] = field(default_factory=list)
    cache_source: str | None = None
    quote_key: str | None = None
    missing_products: list[str] = field(default_factory=list)
    install_only_items: list[str] = field(default_factory=list)
    freight_reason: str | None = None
    message: str | None = None


class QuoteService:
    """Produces rate quotes for a cart shipped to a destination."""

    def __init__(
        self,
        db: Session,
        client: Any,
        config: EngineConfig,
        cache: QuoteCache | None = None,
        clock: Clock = utcnow,
    ):
        self.client = client
        self.config = config
        self.products = ProductRepository(db)
        self.cache = cache or QuoteCache(QuoteCacheRepository(db), config.quote_ttl_seconds, clock)
        self.planner = PackagePlanner(config)
        self.selection = SelectionOptions.from_config(config)

    def load_profiles(self, items: list[CartItem]) -> list[ProductShippingProfile]:
        """One batched product lookup for every key the cart references."""
        keys = collect_lookup_keys(items)
        if keys.is_empty():
            return []
        products = self.products.find_by_keys(keys.skus, keys.ids, keys.titles)
        return [ProductShippingProfile.from_document(p.to_document()) for p in products]

    def plan_cart(self, items: list[CartItem]) -> tuple[Resolution, PackagePlan]:
        resolution = resolve_cart(items, self.load_profiles(items))
        return resolution, self.planner.plan(resolution.resolved)

    def quote(
        self,
        cart: list[CartItem | Mapping[str, Any]],
        destination: Address | Mapping[str, Any] | str | None,
    ) -> QuoteResult:
        """Quote a cart.

        Input is validated before any lookup or provider call. Freight and
        install-only carts return early without rates. Otherwise a valid
        cached quote is returned when present, and a fresh quote is cached.

        Raises:
            QuoteInputError: Empty cart
            MissingFieldsError: Destination is incomplete
            EasyPostError: Provider failure on a cache miss
        """
        items = normalize_cart(cart or [])
        if not items:
            raise QuoteInputError("Cart must contain at least one item.")

        to_address = coerce_address(destination)
        missing = to_address.missing_fields()
        if missing:
            raise MissingFieldsError(missing, code=ErrorCode.INCOMPLETE_ADDRESS)

        resolution, plan = self.plan_cart(items)

        if plan.freight:
            return QuoteResult(
                freight=True,
                freight_reason=plan.freight_reason,
                missing_products=resolution.missing_products,
                install_only_items=plan.install_only_items,
                message=FREIGHT_MESSAGE,
            )
        if plan.install_only:
            return QuoteResult(
                install_only=True,
                missing_products=resolution.missing_products,
                install_only_items=plan.install_only_items,
                message=INSTALL_ONLY_MESSAGE,
            )

        quote_key = build_quote_key(items, to_address)
        cached = self.cache.get(quote_key)
        if cached is not None:
            return QuoteResult(
                rates=cached.rates,
                best_rate=select_rate(cached.rates, self.selection),
                packages=cached.packages,
                cache_source="cache",
                quote_key=quote_key,
                missing_products=resolution.missing_products,
                install_only_items=plan.install_only_items,
            )

        rate_quote = self.client.get_rates(
            to_address,
            self.config.origin,
            Parcel.from_package(plan.primary),
        )
        rates = rank_rates(rate_quote.rates, self.selection.confidence_threshold)

        if rates:
            self.cache.put(QuoteCacheRecord(
                quote_key=quote_key,
                destination_fingerprint=destination_fingerprint(to_address),
                cart_fingerprint=cart_fingerprint(items),
                rates=[r.to_dict() for r in rates],
                packages=[p.to_dict() for p in plan.packages],
                provider_shipment_id=rate_quote.shipment_id,
            ))
        else:
            logger.warning("Provider returned no priced rates for shipment %s", rate_quote.shipment_id)

        return QuoteResult(
            rates=rates,
            best_rate=select_rate(rates, self.selection),
            packages=plan.packages,
            cache_source="fresh",
            quote_key=quote_key,
            missing_products=resolution.missing_products,
            install_only_items=plan.install_only_items,
        )
