"""Mock EasyPost client for running without API keys."""

import random
from typing import Any

from shipquote.addresses import Address
from shipquote.errors import ErrorCode
from shipquote.easypost_client import (
    Parcel,
    PurchasedLabel,
    PurchaseError,
    RateQuote,
    ShipmentError,
    normalize_rates,
    parse_amount,
    validate_shipment_inputs,
)


# Realistic mock data: carrier, service, min days, max days
CARRIERS = [
    ("USPS", "GroundAdvantage", 5, 7),
    ("USPS", "Priority", 2, 3),
    ("USPS", "Express", 1, 2),
    ("UPS", "Ground", 4, 5),
    ("UPS", "3DaySelect", 3, 3),
    ("UPS", "2ndDayAir", 2, 2),
    ("FedEx", "FEDEX_GROUND", 4, 5),
    ("FedEx", "FEDEX_2_DAY", 2, 2),
    ("FedEx", "PRIORITY_OVERNIGHT", 1, 1),
]

WEST_COAST = {"CA", "WA", "OR", "NV", "AZ"}
EAST_COAST = {"NY", "NJ", "MA", "CT", "PA", "VA", "MD", "FL"}


def _generate_id(prefix: str) -> str:
    return f"{prefix}_{random.randint(10000000, 99999999)}"


def _generate_tracking() -> str:
    prefix = random.choice(["1Z", "94", "78"])
    return f"{prefix}{random.randint(100000000, 999999999)}"


class MockEasyPostClient:
    """In-memory stand-in with the same interface as EasyPostClient.

    Shipments are remembered so buy() and generate_form() behave like the
    real API against previously created ids.
    """

    def __init__(self, api_key: str | None = None, currency: str = "USD"):
        self.currency = currency
        self.shipments: dict[str, dict[str, Any]] = {}

    def _price(self, to_address: Address, parcel: Parcel, carrier: str, min_days: int) -> float:
        base_cost = 5.0 + (parcel.weight / 16) * 0.5

        state = to_address.state.upper()
        if state in WEST_COAST:
            distance_factor = 1.5
        elif state in EAST_COAST:
            distance_factor = 1.0
        else:
            distance_factor = 1.25

        rate = base_cost * distance_factor * (1 + 1.0 / min_days)
        if carrier == "UPS":
            rate *= 1.1
        elif carrier == "FedEx":
            rate *= 1.15
        return round(rate, 2)

    def _create(self, to_address: Address, from_address: Address, parcel: Parcel) -> dict[str, Any]:
        shipment_id = _generate_id("shp")
        rates = []
        smart_rates = []
        for carrier, service, min_days, max_days in CARRIERS:
            rate = {
                "id": _generate_id("rate"),
                "carrier": carrier,
                "carrier_account_id": f"ca_{carrier.lower()}",
                "service": service,
                "rate": f"{self._price(to_address, parcel, carrier, min_days):.2f}",
                "currency": self.currency,
                "delivery_days": max_days,
                "shipment_id": shipment_id,
            }
            rates.append(rate)
            smart_rates.append({
                "carrier": carrier,
                "service": service,
                "time_in_transit": {
                    "percentile_50": min_days,
                    "percentile_75": max_days,
                    "percentile_85": max_days,
                    "percentile_90": max_days + 1,
                    "percentile_95": max_days + 1,
                    "percentile_97": max_days + 2,
                    "percentile_99": max_days + 2,
                },
                "delivery_date_confidence": 0.9,
                "delivery_date_guaranteed": carrier != "USPS" and min_days == 1,
            })
        shipment = {
            "id": shipment_id,
            "rates": rates,
            "smart_rates": smart_rates,
            "forms": [],
            "status": "unknown",
        }
        self.shipments[shipment_id] = shipment
        return shipment

    def get_rates(
        self,
        to_address: Address,
        from_address: Address,
        parcel: Parcel,
        with_smart_rates: bool = True,
    ) -> RateQuote:
        """Generate realistic mock rates based on weight and distance."""
        validate_shipment_inputs(to_address, from_address, parcel)
        shipment = self._create(to_address, from_address, parcel)
        smart = shipment["smart_rates"] if with_smart_rates else []
        return RateQuote(
            shipment_id=shipment["id"],
            rates=normalize_rates(shipment["rates"], self.currency, smart),
        )

    def create_shipment(
        self,
        to_address: Address,
        from_address: Address,
        parcel: Parcel,
        reference: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> RateQuote:
        validate_shipment_inputs(to_address, from_address, parcel)
        shipment = self._create(to_address, from_address, parcel)
        shipment["reference"] = reference
        shipment["options"] = options or {}
        return RateQuote(
            shipment_id=shipment["id"],
            rates=normalize_rates(shipment["rates"], self.currency),
        )

    def buy(self, shipment_id: str, rate_id: str) -> PurchasedLabel:
        shipment = self.shipments.get(shipment_id)
        if shipment is None:
            raise ShipmentError(
                message=f"Shipment {shipment_id} not found.",
                code=ErrorCode.EASYPOST_SHIPMENT_ERROR,
            )
        rate = next((r for r in shipment["rates"] if r["id"] == rate_id), None)
        if rate is None:
            raise PurchaseError(
                message="Rate not found for this shipment.",
                code=ErrorCode.EASYPOST_PURCHASE_ERROR,
            )

        tracking = _generate_tracking()
        tracker_id = _generate_id("trk")
        shipment.update({
            "status": "purchased",
            "selected_rate": rate,
            "tracking_code": tracking,
            "tracker": {
                "id": tracker_id,
                "public_url": f"https://track.example.com/{tracker_id}",
            },
            "postage_label": {"label_url": f"https://example.com/labels/{shipment_id}.pdf"},
        })
        return PurchasedLabel(
            shipment_id=shipment_id,
            rate_id=rate_id,
            tracking_number=tracking,
            tracker_id=tracker_id,
            tracking_url=shipment["tracker"]["public_url"],
            label_url=shipment["postage_label"]["label_url"],
            carrier=rate["carrier"],
            service=rate["service"],
            cost=parse_amount(rate["rate"]),
            currency=rate["currency"],
        )

    def generate_form(
        self,
        shipment_id: str,
        form_type: str,
        form_options: dict[str, Any] | None = None,
    ) -> str | None:
        shipment = self.shipments.get(shipment_id)
        if shipment is None:
            raise ShipmentError(
                message=f"Shipment {shipment_id} not found.",
                code=ErrorCode.EASYPOST_SHIPMENT_ERROR,
            )
        url = f"https://example.com/forms/{shipment_id}/{form_type}.pdf"
        shipment["forms"].append({"form_type": form_type, "form_url": url})
        return url
