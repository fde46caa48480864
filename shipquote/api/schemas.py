"""Pydantic schemas for API requests and responses.

Wire names are camelCase; Python attributes stay snake_case.
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from shipquote.easypost_client import Rate
from shipquote.labels import PurchaseOutcome
from shipquote.packages import Package
from shipquote.quoting import QuoteResult


MAX_CART_ITEMS = 200


def strip_str(v: Any) -> Any:
    """Strip whitespace from strings, pass anything else through."""
    if isinstance(v, str):
        return v.strip()
    return v


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Quote models
class CartItemModel(CamelModel):
    """Cart line; any of identifier, sku, productId or title identifies it."""

    identifier: str | None = Field(default=None, max_length=500)
    sku: str | None = Field(default=None, max_length=255)
    product_id: str | None = Field(default=None, max_length=255)
    title: str | None = Field(default=None, max_length=500)
    # Coerced downstream; non-finite or missing becomes 1.
    quantity: Any = None

    @field_validator("identifier", "sku", "product_id", "title", mode="before")
    @classmethod
    def strip_strings(cls, v: Any) -> Any:
        return strip_str(v)

    @model_validator(mode="after")
    def require_identifier(self) -> "CartItemModel":
        if not any([self.identifier, self.sku, self.product_id, self.title]):
            raise ValueError("Cart item needs an identifier, sku, productId or title")
        return self

    def to_cart_item(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "sku": self.sku,
            "productId": self.product_id,
            "title": self.title,
            "quantity": self.quantity,
        }


class QuoteRequest(CamelModel):
    """Quote request body."""

    cart: list[CartItemModel] = Field(..., min_length=1, max_length=MAX_CART_ITEMS)
    destination: dict[str, Any] | str = Field(
        ...,
        validation_alias=AliasChoices("destination", "to"),
    )


class DimensionsModel(CamelModel):
    length: float
    width: float
    height: float
    unit: str = "inch"


class PackageModel(CamelModel):
    weight_value: float
    weight_unit: str = "pound"
    dimensions: DimensionsModel
    origin_item_ref: str | None = None

    @classmethod
    def from_package(cls, package: Package) -> "PackageModel":
        return cls(
            weight_value=package.weight_value,
            weight_unit=package.weight_unit,
            dimensions=DimensionsModel(**package.dimensions.to_dict()),
            origin_item_ref=package.origin_item_ref,
        )


class RateModel(CamelModel):
    rate_id: str
    carrier_id: str = ""
    carrier_code: str = ""
    carrier_display: str = ""
    service: str = ""
    service_code: str = ""
    amount: float = Field(..., gt=0)
    currency: str = "USD"
    delivery_days: int | None = None
    estimated_delivery_date: str | None = None
    delivery_confidence: float | None = None
    delivery_date_guaranteed: bool = False
    time_in_transit: dict[str, float] | None = None

    @classmethod
    def from_rate(cls, rate: Rate) -> "RateModel":
        return cls(
            rate_id=rate.rate_id,
            carrier_id=rate.carrier_id,
            carrier_code=rate.carrier_code,
            carrier_display=rate.carrier,
            service=rate.service,
            service_code=rate.service_code,
            amount=rate.amount,
            currency=rate.currency,
            delivery_days=rate.delivery_days,
            estimated_delivery_date=rate.estimated_delivery_date,
            delivery_confidence=rate.delivery_confidence,
            delivery_date_guaranteed=rate.delivery_date_guaranteed,
            time_in_transit=rate.time_in_transit,
        )


class QuoteResponse(CamelModel):
    """Quote outcome: freight, install-only, or ranked rates."""

    freight: bool = False
    install_only: bool = False
    rates: list[RateModel] | None = None
    best_rate: RateModel | None = None
    packages: list[PackageModel] | None = None
    cache_source: str | None = Field(default=None, pattern=r"^(fresh|cache)$")
    quote_key: str | None = None
    missing_products: list[str] = Field(default_factory=list)
    install_only_items: list[str] = Field(default_factory=list)
    freight_reason: str | None = None
    message: str | None = None

    @classmethod
    def from_result(cls, result: QuoteResult) -> "QuoteResponse":
        if result.freight or result.install_only:
            return cls(
                freight=result.freight,
                install_only=result.install_only,
                missing_products=result.missing_products,
                install_only_items=result.install_only_items,
                freight_reason=result.freight_reason,
                message=result.message,
            )
        return cls(
            rates=[RateModel.from_rate(r) for r in result.rates],
            best_rate=RateModel.from_rate(result.best_rate) if result.best_rate else None,
            packages=[PackageModel.from_package(p) for p in result.packages],
            cache_source=result.cache_source,
            quote_key=result.quote_key,
            missing_products=result.missing_products,
            install_only_items=result.install_only_items,
            message=result.message,
        )


# Label purchase models
class PurchaseRequestModel(CamelModel):
    """Label purchase request.

    Validated only after the raw body has passed the manual-trigger check.
    """

    order_id: str | None = Field(default=None, max_length=100)
    manual_trigger: Any = None
    rate_id: str | None = Field(default=None, max_length=100)

    @field_validator("order_id", "rate_id", mode="before")
    @classmethod
    def coerce_strings(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return strip_str(v) or None
        return str(v)


class PurchaseResponse(CamelModel):
    """Label purchase outcome."""

    success: bool
    state: str
    tracking_number: str | None = None
    label_url: str | None = None
    tracking_url: str | None = None
    cost: float | None = None
    currency: str | None = None
    carrier: str | None = None
    service: str | None = None
    shipment_id: str | None = None
    already_purchased: bool = False
    error_code: str | None = None
    error: str | None = None
    missing_fields: list[str] | None = None

    @classmethod
    def from_outcome(cls, outcome: PurchaseOutcome) -> "PurchaseResponse":
        result = outcome.result
        return cls(
            success=outcome.success,
            state=outcome.state.value,
            tracking_number=result.tracking_number if result else None,
            label_url=result.label_url if result else None,
            tracking_url=result.tracking_url if result else None,
            cost=result.cost if result else None,
            currency=result.currency if result else None,
            carrier=result.carrier if result else None,
            service=result.service if result else None,
            shipment_id=result.shipment_id if result else None,
            already_purchased=outcome.already_purchased,
            error_code=outcome.error_code,
            error=outcome.error,
            missing_fields=outcome.missing_fields or None,
        )


class ShippingLogEntryModel(CamelModel):
    status: str
    message: str | None = None
    tracking_number: str | None = None
    created_at: datetime | None = None


class OrderLabelResponse(CamelModel):
    """Persisted label state of an order."""

    order_id: str
    order_number: str | None = None
    label_purchased: bool
    fulfillment_status: str | None = None
    fulfillment_error: str | None = None
    fulfillment_attempts: int = Field(default=0, ge=0)
    shipment_id: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    label_url: str | None = None
    carrier: str | None = None
    service: str | None = None
    cost: float | None = None
    currency: str | None = None
    purchased_at: datetime | None = None
    packing_slip_url: str | None = None
    qr_code_url: str | None = None
    label_archive_url: str | None = None
    shipping_log: list[ShippingLogEntryModel] = Field(default_factory=list)
