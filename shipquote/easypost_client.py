"""EasyPost API client wrapper: rateable shipments, label purchase and forms."""

import logging
import math
import os
from dataclasses import dataclass, field, asdict
from typing import Any, Mapping

import easypost

from shipquote.addresses import Address
from shipquote.errors import ErrorCode, MissingFieldsError
from shipquote.packages import Package

logger = logging.getLogger(__name__)

TRANSIT_PERCENTILES = (50, 75, 85, 90, 95, 97, 99)


# ============================================================================
# Custom Exceptions
# ============================================================================

class EasyPostError(Exception):
    """Base exception for EasyPost errors."""

    def __init__(self, message: str, code: str, original_error: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.original_error = original_error


class RateError(EasyPostError):
    """Error fetching shipping rates."""
    pass


class ShipmentError(EasyPostError):
    """Error creating or retrieving a shipment."""
    pass


class PurchaseError(EasyPostError):
    """Error buying a label."""
    pass


class FormError(EasyPostError):
    """Error generating a shipment form."""
    pass


@dataclass
class Parcel:
    length: float  # inches
    width: float   # inches
    height: float  # inches
    weight: float  # ounces

    @classmethod
    def from_package(cls, package: Package) -> "Parcel":
        return cls(
            length=package.dimensions.length,
            width=package.dimensions.width,
            height=package.dimensions.height,
            weight=max(1.0, round(package.ounces, 2)),
        )

    def missing_fields(self) -> list[str]:
        missing = []
        for name in ("length", "width", "height", "weight"):
            value = getattr(self, name)
            if value is None or not math.isfinite(value) or value <= 0:
                missing.append(name)
        return missing


@dataclass
class Rate:
    rate_id: str
    carrier_code: str
    carrier: str
    service: str
    amount: float
    currency: str = "USD"
    carrier_id: str = ""
    service_code: str = ""
    delivery_days: int | None = None
    estimated_delivery_date: str | None = None
    delivery_confidence: float | None = None
    delivery_date_guaranteed: bool = False
    time_in_transit: dict[str, float] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rateId": self.rate_id,
            "carrierId": self.carrier_id,
            "carrierCode": self.carrier_code,
            "carrierDisplay": self.carrier,
            "service": self.service,
            "serviceCode": self.service_code,
            "amount": self.amount,
            "currency": self.currency,
            "deliveryDays": self.delivery_days,
            "estimatedDeliveryDate": self.estimated_delivery_date,
            "deliveryConfidence": self.delivery_confidence,
            "deliveryDateGuaranteed": self.delivery_date_guaranteed,
            "timeInTransit": self.time_in_transit,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Rate":
        return cls(
            rate_id=data["rateId"],
            carrier_id=data.get("carrierId") or "",
            carrier_code=data.get("carrierCode") or "",
            carrier=data.get("carrierDisplay") or data.get("carrierCode") or "",
            service=data.get("service") or "",
            service_code=data.get("serviceCode") or "",
            amount=float(data["amount"]),
            currency=data.get("currency") or "USD",
            delivery_days=data.get("deliveryDays"),
            estimated_delivery_date=data.get("estimatedDeliveryDate"),
            delivery_confidence=data.get("deliveryConfidence"),
            delivery_date_guaranteed=bool(data.get("deliveryDateGuaranteed")),
            time_in_transit=data.get("timeInTransit"),
        )


@dataclass
class RateQuote:
    shipment_id: str
    rates: list[Rate] = field(default_factory=list)


@dataclass
class PurchasedLabel:
    shipment_id: str
    rate_id: str
    tracking_number: str | None = None
    tracker_id: str | None = None
    tracking_url: str | None = None
    label_url: str | None = None
    carrier: str | None = None
    service: str | None = None
    cost: float | None = None
    currency: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ============================================================================
# Normalization helpers
# ============================================================================

def as_dict(obj: Any) -> dict[str, Any]:
    """Coerce an EasyPostObject or mapping into a plain dict."""
    if obj is None:
        return {}
    if isinstance(obj, Mapping):
        return dict(obj)
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return {}


def address_to_dict(addr: Address) -> dict[str, str]:
    return {
        "name": addr.name,
        "street1": addr.line1,
        "street2": addr.line2,
        "city": addr.city,
        "state": addr.state,
        "zip": addr.postal_code,
        "country": addr.country,
        "phone": addr.phone,
        "email": addr.email,
    }


def validate_shipment_inputs(to_address: Address, from_address: Address, parcel: Parcel) -> None:
    """Fail fast before calling out when any required field is blank."""
    missing = [f"to.{name}" for name in to_address.missing_fields()]
    missing += [f"from.{name}" for name in from_address.missing_fields()]
    if missing:
        raise MissingFieldsError(missing, code=ErrorCode.INCOMPLETE_ADDRESS)
    parcel_missing = [f"parcel.{name}" for name in parcel.missing_fields()]
    if parcel_missing:
        raise MissingFieldsError(parcel_missing, code=ErrorCode.INCOMPLETE_PARCEL)


def parse_amount(value: Any) -> float | None:
    """Parse a provider amount; return None unless it is a finite number > 0."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def _normalize_confidence(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    # SmartRate reports either a 0-1 fraction or a 0-100 percentage.
    return float(value) * 100 if value < 1 else float(value)


def _transit_percentiles(value: Any) -> dict[str, float] | None:
    if not isinstance(value, Mapping):
        return None
    result = {}
    for pct in TRANSIT_PERCENTILES:
        days = value.get(f"percentile_{pct}")
        if isinstance(days, (int, float)) and not isinstance(days, bool):
            result[f"percentile_{pct}"] = float(days)
    return result or None


def normalize_rate(
    raw: Mapping[str, Any],
    currency: str = "USD",
    smart: Mapping[str, Any] | None = None,
) -> Rate | None:
    """Normalize one provider rate, or return None when it has no usable price or id."""
    amount = parse_amount(raw.get("rate"))
    rate_id = raw.get("id")
    if amount is None or not rate_id:
        return None

    smart = smart or {}
    delivery_days = raw.get("delivery_days")
    if isinstance(delivery_days, bool) or not isinstance(delivery_days, (int, float)):
        delivery_days = None

    carrier_code = raw.get("carrier") or ""
    return Rate(
        rate_id=rate_id,
        carrier_id=raw.get("carrier_account_id") or "",
        carrier_code=carrier_code,
        carrier=raw.get("carrier_display_name") or carrier_code,
        service=raw.get("service") or "",
        service_code=raw.get("service_code") or "",
        amount=amount,
        currency=raw.get("currency") or currency,
        delivery_days=int(delivery_days) if delivery_days is not None else None,
        estimated_delivery_date=smart.get("delivery_date") or raw.get("delivery_date"),
        delivery_confidence=_normalize_confidence(smart.get("delivery_date_confidence")),
        delivery_date_guaranteed=bool(
            smart.get("delivery_date_guaranteed", raw.get("delivery_date_guaranteed"))
        ),
        time_in_transit=_transit_percentiles(smart.get("time_in_transit")),
    )


def normalize_rates(
    raw_rates: list[Any],
    currency: str = "USD",
    smart_rates: list[Any] | None = None,
) -> list[Rate]:
    """Normalize and price-sort rates, dropping zero or unparseable amounts."""
    smart_lookup: dict[tuple[str, str], dict[str, Any]] = {}
    for smart in smart_rates or []:
        data = as_dict(smart)
        smart_lookup.setdefault((data.get("carrier") or "", data.get("service") or ""), data)

    rates = []
    for raw in raw_rates or []:
        data = as_dict(raw)
        rate = normalize_rate(
            data,
            currency=currency,
            smart=smart_lookup.get((data.get("carrier") or "", data.get("service") or "")),
        )
        if rate is None:
            logger.debug("Dropping unpriced rate %s", data.get("id"))
            continue
        rates.append(rate)

    rates.sort(key=lambda r: (r.amount, r.rate_id))
    return rates


def format_provider_error(error: Exception, fallback: str) -> str:
    """Best-effort human-readable message from an EasyPost API error."""
    message = getattr(error, "message", None) or str(error) or fallback
    details = []
    for item in getattr(error, "errors", None) or []:
        data = item if isinstance(item, Mapping) else as_dict(item)
        text = data.get("message")
        if text:
            name = data.get("field")
            details.append(f"{name}: {text}" if name else str(text))
    if details:
        return f"{message} ({'; '.join(details)})"
    return message


class EasyPostClient:
    """Wrapper around EasyPost API."""

    def __init__(self, api_key: str | None = None, currency: str = "USD"):
        key = api_key or os.getenv("EASYPOST_API_KEY")
        if not key:
            raise ValueError("EASYPOST_API_KEY not set")
        self.client = easypost.EasyPostClient(key)
        self.currency = currency

    def _create(
        self,
        to_address: Address,
        from_address: Address,
        parcel: Parcel,
        reference: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> Any:
        params: dict[str, Any] = {
            "to_address": address_to_dict(to_address),
            "from_address": address_to_dict(from_address),
            "parcel": {
                "length": parcel.length,
                "width": parcel.width,
                "height": parcel.height,
                "weight": parcel.weight,
            },
        }
        if reference:
            params["reference"] = reference
        if options:
            params["options"] = options
        return self.client.shipment.create(**params)

    def _smart_rates(self, shipment_id: str) -> list[Any]:
        """Fetch SmartRate data; failures only drop the confidence fields."""
        try:
            return list(self.client.shipment.get_smart_rates(shipment_id) or [])
        except Exception as e:
            logger.warning("SmartRate lookup failed for %s, using basic rates: %s", shipment_id, e)
            return []

    def get_rates(
        self,
        to_address: Address,
        from_address: Address,
        parcel: Parcel,
        with_smart_rates: bool = True,
    ) -> RateQuote:
        """Create a rateable shipment and return its normalized rates.

        Args:
            to_address: Destination address
            from_address: Origin address
            parcel: Package dimensions (inches) and weight (ounces)
            with_smart_rates: Enrich with SmartRate delivery confidence

        Returns:
            RateQuote with the provider shipment id and price-sorted rates

        Raises:
            MissingFieldsError: If an address or the parcel is incomplete
            RateError: If unable to fetch rates from EasyPost
        """
        validate_shipment_inputs(to_address, from_address, parcel)

        try:
            shipment = self._create(to_address, from_address, parcel)
        except easypost.errors.ApiError as e:
            logger.error("EasyPost API error fetching rates: %s", e)
            raise RateError(
                message=format_provider_error(e, "Unable to fetch shipping rates."),
                code=ErrorCode.EASYPOST_RATE_ERROR,
                original_error=e,
            )
        except Exception as e:
            logger.exception("Unexpected error fetching rates: %s", e)
            raise RateError(
                message="An error occurred while fetching shipping rates.",
                code=ErrorCode.EASYPOST_RATE_ERROR,
                original_error=e,
            )

        data = as_dict(shipment)
        smart = self._smart_rates(data["id"]) if with_smart_rates and data.get("rates") else []
        return RateQuote(
            shipment_id=data["id"],
            rates=normalize_rates(data.get("rates") or [], self.currency, smart),
        )

    def create_shipment(
        self,
        to_address: Address,
        from_address: Address,
        parcel: Parcel,
        reference: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> RateQuote:
        """Create a shipment intended for purchase and return its rates.

        Raises:
            MissingFieldsError: If an address or the parcel is incomplete
            ShipmentError: If EasyPost rejects the shipment
        """
        validate_shipment_inputs(to_address, from_address, parcel)

        try:
            shipment = self._create(to_address, from_address, parcel, reference, options)
        except easypost.errors.ApiError as e:
            logger.error("EasyPost API error creating shipment: %s", e)
            raise ShipmentError(
                message=format_provider_error(e, "Unable to create shipment."),
                code=ErrorCode.EASYPOST_SHIPMENT_ERROR,
                original_error=e,
            )
        except Exception as e:
            logger.exception("Unexpected error creating shipment: %s", e)
            raise ShipmentError(
                message="An error occurred while creating the shipment.",
                code=ErrorCode.EASYPOST_SHIPMENT_ERROR,
                original_error=e,
            )

        data = as_dict(shipment)
        return RateQuote(
            shipment_id=data["id"],
            rates=normalize_rates(data.get("rates") or [], self.currency),
        )

    def buy(self, shipment_id: str, rate_id: str) -> PurchasedLabel:
        """Buy a rate on an existing shipment. Never retried.

        Raises:
            PurchaseError: If EasyPost refuses the purchase
        """
        try:
            bought = as_dict(self.client.shipment.buy(shipment_id, rate={"id": rate_id}))
        except easypost.errors.ApiError as e:
            logger.error("EasyPost API error purchasing label for %s: %s", shipment_id, e)
            raise PurchaseError(
                message=format_provider_error(e, "Unable to purchase shipping label."),
                code=ErrorCode.EASYPOST_PURCHASE_ERROR,
                original_error=e,
            )
        except Exception as e:
            logger.exception("Unexpected error purchasing label for %s: %s", shipment_id, e)
            raise PurchaseError(
                message="An error occurred while purchasing the label.",
                code=ErrorCode.EASYPOST_PURCHASE_ERROR,
                original_error=e,
            )

        if not bought.get("postage_label"):
            bought = self._retrieve_after_buy(shipment_id, bought)
        return self._label_from_shipment(bought, rate_id)

    def _retrieve_after_buy(self, shipment_id: str, fallback: dict[str, Any]) -> dict[str, Any]:
        try:
            return as_dict(self.client.shipment.retrieve(shipment_id))
        except Exception as e:
            # The label is paid for; report what the buy response had.
            logger.warning("Could not re-retrieve purchased shipment %s: %s", shipment_id, e)
            return fallback

    def _label_from_shipment(self, data: dict[str, Any], rate_id: str) -> PurchasedLabel:
        label = data.get("postage_label") or {}
        tracker = data.get("tracker") or {}
        selected = data.get("selected_rate") or {}
        return PurchasedLabel(
            shipment_id=data.get("id") or "",
            rate_id=selected.get("id") or rate_id,
            tracking_number=data.get("tracking_code") or tracker.get("tracking_code"),
            tracker_id=tracker.get("id"),
            tracking_url=tracker.get("public_url"),
            label_url=label.get("label_url") or label.get("label_pdf_url"),
            carrier=selected.get("carrier_display_name") or selected.get("carrier"),
            service=selected.get("service"),
            cost=parse_amount(selected.get("rate")),
            currency=selected.get("currency") or self.currency,
        )

    def generate_form(
        self,
        shipment_id: str,
        form_type: str,
        form_options: dict[str, Any] | None = None,
    ) -> str | None:
        """Generate a shipment form and return its URL.

        Raises:
            FormError: If EasyPost cannot produce the form
        """
        try:
            shipment = as_dict(self.client.shipment.generate_form(shipment_id, form_type, form_options))
        except easypost.errors.ApiError as e:
            raise FormError(
                message=format_provider_error(e, f"Unable to generate {form_type}."),
                code=ErrorCode.EASYPOST_FORM_ERROR,
                original_error=e,
            )
        except Exception as e:
            raise FormError(
                message=f"An error occurred while generating {form_type}.",
                code=ErrorCode.EASYPOST_FORM_ERROR,
                original_error=e,
            )

        for form in shipment.get("forms") or []:
            form_data = as_dict(form)
            if form_data.get("form_type") == form_type and form_data.get("form_url"):
                return form_data["form_url"]
        return None
