"""Label purchase orchestration for a single order.

A purchase moves through REQUESTED, ADDRESS_VALIDATED, PARCEL_VALIDATED,
SHIPMENT_CREATED, RATE_PICKED, PURCHASED and ORDER_UPDATED. Any validation
step may end in REJECTED instead.

Two guards run before anything else:

* the request must carry an explicit manual trigger, otherwise it is
  rejected with a fixed code no matter what else it contains;
* an order that already has a label returns the stored outcome and the
  provider is never called again.

Provider calls are never retried. Once a label is bought, its tracking and
label fields are written in one commit, then the follow-up artifacts run
best-effort. If that commit fails, the order is still flagged as purchased
with its shipment id so no later attempt buys again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from shipquote.addresses import Address, address_from_mapping
from shipquote.artifacts import LabelArtifacts, SideTaskReport
from shipquote.config import EngineConfig
from shipquote.db.models import Order
from shipquote.db.repository import OrderRepository
from shipquote.easypost_client import EasyPostError, Parcel, PurchasedLabel, Rate
from shipquote.errors import ErrorCode, MissingFieldsError
from shipquote.metadata import normalize_cart, parse_dimensions, positive_number
from shipquote.packages import Package
from shipquote.quoting import QuoteService
from shipquote.rate_selector import rank_rates

logger = logging.getLogger(__name__)


class PurchaseState(str, Enum):
    REQUESTED = "requested"
    ADDRESS_VALIDATED = "address_validated"
    PARCEL_VALIDATED = "parcel_validated"
    SHIPMENT_CREATED = "shipment_created"
    RATE_PICKED = "rate_picked"
    PURCHASED = "purchased"
    ORDER_UPDATED = "order_updated"
    REJECTED = "rejected"


@dataclass
class PurchaseRequest:
    order_id: str | UUID | None
    manual_trigger: bool = False
    rate_id: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PurchaseRequest":
        manual = data.get("manualTrigger", data.get("manual_trigger"))
        return cls(
            order_id=data.get("orderId") or data.get("order_id"),
            # Only a literal true counts as operator approval.
            manual_trigger=manual is True,
            rate_id=data.get("rateId") or data.get("rate_id"),
        )


@dataclass
class LabelPurchaseResult:
    shipment_id: str
    purchased_at: datetime | None = None
    tracker_id: str | None = None
    label_url: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    carrier: str | None = None
    service: str | None = None
    cost: float | None = None
    currency: str | None = None

    @classmethod
    def from_order(cls, order: Order) -> "LabelPurchaseResult":
        return cls(
            shipment_id=order.shipment_id or "",
            purchased_at=order.label_purchased_at,
            tracker_id=order.tracker_id,
            label_url=order.label_url,
            tracking_number=order.tracking_number,
            tracking_url=order.tracking_url,
            carrier=order.carrier,
            service=order.service,
            cost=order.label_cost,
            currency=order.label_currency,
        )


@dataclass
class PurchaseOutcome:
    success: bool
    state: PurchaseState
    result: LabelPurchaseResult | None = None
    error_code: str | None = None
    error: str | None = None
    missing_fields: list[str] = field(default_factory=list)
    already_purchased: bool = False
    side_tasks: SideTaskReport | None = None


class PurchaseFailed(Exception):
    """Internal signal carrying a failed outcome out of a purchase step."""

    def __init__(self, outcome: PurchaseOutcome):
        super().__init__(outcome.error)
        self.outcome = outcome


def _rejected(code: str, message: str, missing: list[str] | None = None) -> PurchaseFailed:
    return PurchaseFailed(PurchaseOutcome(
        success=False,
        state=PurchaseState.REJECTED,
        error_code=code,
        error=message,
        missing_fields=missing or [],
    ))


class LabelPurchaseOrchestrator:
    """Buys at most one label per order."""

    def __init__(
        self,
        db: Session,
        client: Any,
        config: EngineConfig,
        artifacts: LabelArtifacts | None = None,
        quotes: QuoteService | None = None,
    ):
        self.client = client
        self.config = config
        self.orders = OrderRepository(db)
        self.artifacts = artifacts or LabelArtifacts(self.orders, client, config)
        self.quotes = quotes or QuoteService(db, client, config)

    def purchase(self, request: PurchaseRequest | Mapping[str, Any]) -> PurchaseOutcome:
        if not isinstance(request, PurchaseRequest):
            request = PurchaseRequest.from_mapping(request)

        if request.manual_trigger is not True:
            logger.warning("Rejected label purchase for %s: no manual trigger", request.order_id)
            return PurchaseOutcome(
                success=False,
                state=PurchaseState.REJECTED,
                error_code=ErrorCode.MANUAL_TRIGGER_REQUIRED,
                error="Label purchase requires an explicit manual action.",
            )

        order = self._load_order(request.order_id)
        if order is None:
            return PurchaseOutcome(
                success=False,
                state=PurchaseState.REJECTED,
                error_code=ErrorCode.NOT_FOUND,
                error="Order not found",
            )

        if order.label_purchased:
            logger.info("Order %s already has a label; returning stored result", order.order_number)
            return PurchaseOutcome(
                success=True,
                state=PurchaseState.ORDER_UPDATED,
                result=LabelPurchaseResult.from_order(order),
                already_purchased=True,
            )

        try:
            return self._purchase(order, request)
        except PurchaseFailed as failure:
            self._record_failure(order, failure.outcome.error or "Label purchase failed")
            return failure.outcome

    def _load_order(self, order_id: str | UUID | None) -> Order | None:
        if not order_id:
            return None
        if isinstance(order_id, UUID):
            return self.orders.get_by_id(order_id)
        try:
            return self.orders.get_by_id(UUID(str(order_id)))
        except ValueError:
            return self.orders.get_by_number(str(order_id))

    def _purchase(self, order: Order, request: PurchaseRequest) -> PurchaseOutcome:
        ref = order.order_number or str(order.id)
        logger.info("Label purchase for order %s: %s", ref, PurchaseState.REQUESTED.value)

        to_address = self.recipient_address(order)
        missing = [f"to.{name}" for name in to_address.missing_fields()]
        missing += [f"from.{name}" for name in self.config.origin.missing_fields()]
        if missing:
            raise _rejected(ErrorCode.INCOMPLETE_ADDRESS, "Shipping address is incomplete.", missing)
        logger.info("Label purchase for order %s: %s", ref, PurchaseState.ADDRESS_VALIDATED.value)

        parcel = Parcel.from_package(self.resolve_package(order))
        parcel_missing = [f"parcel.{name}" for name in parcel.missing_fields()]
        if parcel_missing:
            raise _rejected(ErrorCode.INCOMPLETE_PARCEL, "Parcel details are incomplete.", parcel_missing)
        logger.info("Label purchase for order %s: %s", ref, PurchaseState.PARCEL_VALIDATED.value)

        try:
            shipment = self.client.create_shipment(
                to_address,
                self.config.origin,
                parcel,
                reference=ref,
                options=self.shipment_options(order),
            )
        except MissingFieldsError as e:
            raise _rejected(e.code, e.message, e.missing_fields)
        except EasyPostError as e:
            raise PurchaseFailed(PurchaseOutcome(
                success=False,
                state=PurchaseState.PARCEL_VALIDATED,
                error_code=e.code,
                error=e.message,
            ))
        logger.info(
            "Label purchase for order %s: %s (%s)",
            ref, PurchaseState.SHIPMENT_CREATED.value, shipment.shipment_id,
        )

        rate = self.pick_rate(shipment.rates, request.rate_id)
        if rate is None:
            logger.error(
                "Shipment %s for order %s has no purchasable rates; left unpurchased for follow-up",
                shipment.shipment_id, ref,
            )
            raise PurchaseFailed(PurchaseOutcome(
                success=False,
                state=PurchaseState.SHIPMENT_CREATED,
                error_code=ErrorCode.NO_RATES_AVAILABLE,
                error="No purchasable rates were returned for this shipment.",
            ))
        logger.info(
            "Label purchase for order %s: %s (%s %s %.2f)",
            ref, PurchaseState.RATE_PICKED.value, rate.carrier, rate.service, rate.amount,
        )

        try:
            label = self.client.buy(shipment.shipment_id, rate.rate_id)
        except EasyPostError as e:
            logger.error(
                "Buying rate %s on shipment %s for order %s failed: %s",
                rate.rate_id, shipment.shipment_id, ref, e.message,
            )
            raise PurchaseFailed(PurchaseOutcome(
                success=False,
                state=PurchaseState.RATE_PICKED,
                error_code=e.code,
                error=e.message,
            ))
        logger.info("Label purchase for order %s: %s", ref, PurchaseState.PURCHASED.value)

        return self._commit(order, ref, rate, label)

    def _commit(self, order: Order, ref: str, rate: Rate, label: PurchasedLabel) -> PurchaseOutcome:
        purchased_at = datetime.utcnow()
        data = {
            "shipment_id": label.shipment_id,
            "tracker_id": label.tracker_id,
            "selected_rate_id": label.rate_id or rate.rate_id,
            "tracking_number": label.tracking_number,
            "tracking_url": label.tracking_url,
            "label_url": label.label_url,
            "carrier": label.carrier or rate.carrier,
            "service": label.service or rate.service,
            "label_cost": label.cost if label.cost is not None else rate.amount,
            "label_currency": label.currency or rate.currency,
            "label_purchased_at": purchased_at,
        }
        try:
            updated = self.orders.record_label(order.id, data)
        except Exception:
            # The label is paid for; the shipment id is needed to reconcile by hand.
            logger.exception(
                "Label bought for order %s (shipment %s, tracking %s) but saving it failed",
                ref, label.shipment_id, label.tracking_number,
            )
            self._record_unsaved(order, ref, label)
            return PurchaseOutcome(
                success=False,
                state=PurchaseState.PURCHASED,
                error_code=ErrorCode.DATABASE_ERROR,
                error="Label was purchased but could not be saved to the order.",
            )

        logger.info("Label purchase for order %s: %s", ref, PurchaseState.ORDER_UPDATED.value)
        side_tasks = self.artifacts.run(order.id, ref, label)
        return PurchaseOutcome(
            success=True,
            state=PurchaseState.ORDER_UPDATED,
            result=LabelPurchaseResult.from_order(updated),
            side_tasks=side_tasks,
        )

    def _record_unsaved(self, order: Order, ref: str, label: PurchasedLabel) -> None:
        self.orders.db.rollback()
        try:
            self.orders.mark_label_unsaved(
                order.id,
                label.shipment_id,
                f"Label purchased on shipment {label.shipment_id} but not saved; reconcile manually.",
            )
        except Exception:
            logger.critical(
                "Could not mark order %s as purchased; shipment %s must be reconciled before any retry",
                ref, label.shipment_id, exc_info=True,
            )
            self.orders.db.rollback()

    def _record_failure(self, order: Order, message: str) -> None:
        try:
            self.orders.mark_label_failure(order.id, message)
        except Exception:
            logger.exception("Could not record failed label attempt for order %s", order.id)
            self.orders.db.rollback()

    def recipient_address(self, order: Order) -> Address:
        address = address_from_mapping(order.shipping_address)
        address.name = address.name or order.customer_name or "Customer"
        address.email = address.email or order.customer_email or ""
        return address

    def resolve_package(self, order: Order) -> Package:
        """Use the order's stored parcel, else plan one from its cart."""
        weight = positive_number(order.package_weight_lbs)
        dims = parse_dimensions(order.package_dimensions)
        if weight and dims:
            return Package(weight_value=weight, dimensions=dims)

        items = normalize_cart(order.cart or [])
        if not items:
            raise _rejected(ErrorCode.INCOMPLETE_PARCEL, "Order has no parcel or cart to plan from.", ["parcel"])

        _, plan = self.quotes.plan_cart(items)
        if plan.freight:
            raise _rejected(ErrorCode.FREIGHT_REQUIRED, "Order requires a freight quote.")
        if plan.install_only:
            raise _rejected(ErrorCode.INSTALL_ONLY, "Order contains only install-only items.")
        if plan.primary is None:
            raise _rejected(ErrorCode.INCOMPLETE_PARCEL, "No parcel could be planned for this order.", ["parcel"])

        package = plan.primary
        if weight:
            package.weight_value = weight
        if dims:
            package.dimensions = dims
        return package

    def shipment_options(self, order: Order) -> dict[str, Any]:
        options = {
            "label_format": self.config.label_format,
            "label_size": self.config.label_size,
        }
        if order.order_number:
            options["invoice_number"] = order.order_number
            options["print_custom_1"] = f"Order {order.order_number}"
        return options

    def pick_rate(self, rates: list[Rate], rate_id: str | None) -> Rate | None:
        """Honor an explicit rate id if offered, else the cheapest priced rate."""
        ranked = rank_rates(rates, self.config.confidence_threshold)
        if rate_id:
            chosen = next((r for r in ranked if r.rate_id == rate_id), None)
            if chosen is not None:
                return chosen
            logger.warning("Requested rate %s not offered on this shipment; using cheapest", rate_id)
        return ranked[0] if ranked else None
