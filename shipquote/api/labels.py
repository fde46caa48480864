"""Label purchase and order label state endpoints."""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from shipquote.api.deps import get_db, get_label_orchestrator
from shipquote.api.errors import create_error_response, log_api_error, ErrorCode
from shipquote.api.schemas import (
    OrderLabelResponse,
    PurchaseRequestModel,
    PurchaseResponse,
    ShippingLogEntryModel,
)
from shipquote.db.repository import OrderRepository
from shipquote.labels import LabelPurchaseOrchestrator, PurchaseOutcome, PurchaseRequest, PurchaseState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["labels"])

STATUS_BY_CODE = {
    ErrorCode.MANUAL_TRIGGER_REQUIRED: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INCOMPLETE_ADDRESS: 400,
    ErrorCode.INCOMPLETE_PARCEL: 400,
    ErrorCode.FREIGHT_REQUIRED: 409,
    ErrorCode.INSTALL_ONLY: 409,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


async def read_json_body(request: Request) -> Any:
    """Raw JSON body, or None when it cannot be decoded."""
    try:
        return await request.json()
    except ValueError:
        return None


def _field(payload: dict[str, Any], camel: str, snake: str) -> Any:
    return payload.get(camel, payload.get(snake))


@router.post("/labels/purchase", response_model=PurchaseResponse, response_model_exclude_none=True)
def purchase_label(
    response: Response,
    body: Any = Depends(read_json_body),
    orchestrator: LabelPurchaseOrchestrator = Depends(get_label_orchestrator),
) -> PurchaseResponse:
    """Buy a label for an order. Requires manualTrigger: true.

    The trigger is checked on the raw body, before the payload is validated.
    """
    endpoint = "/api/labels/purchase"
    payload = body if isinstance(body, dict) else {}

    if _field(payload, "manualTrigger", "manual_trigger") is not True:
        outcome = orchestrator.purchase(PurchaseRequest(order_id=None, manual_trigger=False))
        return _respond(response, outcome, endpoint)

    try:
        request = PurchaseRequestModel.model_validate(payload)
    except ValidationError as e:
        outcome = PurchaseOutcome(
            success=False,
            state=PurchaseState.REJECTED,
            error_code=ErrorCode.VALIDATION_ERROR,
            error="Invalid label purchase request.",
            missing_fields=[".".join(str(part) for part in err["loc"]) for err in e.errors()],
        )
        return _respond(response, outcome, endpoint)

    try:
        outcome = orchestrator.purchase(PurchaseRequest(
            order_id=request.order_id,
            manual_trigger=True,
            rate_id=request.rate_id,
        ))
    except Exception as e:
        raise create_error_response(
            status_code=500,
            error="Label purchase failed unexpectedly.",
            code=ErrorCode.INTERNAL_ERROR,
            endpoint=endpoint,
            order_id=request.order_id,
            exc=e,
        )
    return _respond(response, outcome, endpoint, order_id=request.order_id)


def _respond(
    response: Response,
    outcome: PurchaseOutcome,
    endpoint: str,
    order_id: str | None = None,
) -> PurchaseResponse:
    if not outcome.success:
        # Provider codes fall through to 502.
        response.status_code = STATUS_BY_CODE.get(outcome.error_code, 502)
        log_api_error(
            outcome.error or "Label purchase failed",
            outcome.error_code or ErrorCode.INTERNAL_ERROR,
            endpoint=endpoint,
            order_id=order_id,
        )
    return PurchaseResponse.from_outcome(outcome)


@router.get("/orders/{order_id}/label", response_model=OrderLabelResponse)
def get_order_label(order_id: str, db: Session = Depends(get_db)) -> OrderLabelResponse:
    """Current persisted label state of an order."""
    endpoint = f"/api/orders/{order_id}/label"
    try:
        oid = UUID(order_id)
    except ValueError:
        raise create_error_response(
            status_code=400,
            error="Invalid order ID format",
            code=ErrorCode.VALIDATION_ERROR,
            endpoint=endpoint,
        )

    order_repo = OrderRepository(db)
    order = order_repo.get_by_id(oid)
    if not order:
        raise create_error_response(
            status_code=404,
            error="Order not found",
            code=ErrorCode.NOT_FOUND,
            endpoint=endpoint,
            order_id=order_id,
        )

    return OrderLabelResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        label_purchased=bool(order.label_purchased),
        fulfillment_status=order.fulfillment_status,
        fulfillment_error=order.fulfillment_error,
        fulfillment_attempts=order.fulfillment_attempts or 0,
        shipment_id=order.shipment_id,
        tracking_number=order.tracking_number,
        tracking_url=order.tracking_url,
        label_url=order.label_url,
        carrier=order.carrier,
        service=order.service,
        cost=order.label_cost,
        currency=order.label_currency,
        purchased_at=order.label_purchased_at,
        packing_slip_url=order.packing_slip_url,
        qr_code_url=order.qr_code_url,
        label_archive_url=order.label_archive_url,
        shipping_log=[
            ShippingLogEntryModel(
                status=entry.status,
                message=entry.message,
                tracking_number=entry.tracking_number,
                created_at=entry.created_at,
            )
            for entry in order_repo.list_log_entries(order.id)
        ],
    )
