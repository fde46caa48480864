"""Shipping quote endpoint."""

import logging

from fastapi import APIRouter, Depends

from shipquote.api.deps import get_quote_service
from shipquote.api.errors import create_error_response, ErrorCode
from shipquote.api.schemas import QuoteRequest, QuoteResponse
from shipquote.easypost_client import EasyPostError
from shipquote.errors import MissingFieldsError, QuoteInputError
from shipquote.quoting import QuoteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/shipping", tags=["shipping"])

ENDPOINT = "/api/shipping/quote"


@router.post("/quote", response_model=QuoteResponse, response_model_exclude_none=True)
def quote(
    request: QuoteRequest,
    service: QuoteService = Depends(get_quote_service),
) -> QuoteResponse:
    """Quote a cart to a destination."""
    try:
        result = service.quote(
            [item.to_cart_item() for item in request.cart],
            request.destination,
        )
    except MissingFieldsError as e:
        raise create_error_response(
            status_code=400,
            error=e.message,
            code=ErrorCode.VALIDATION_ERROR,
            detail=e.code,
            endpoint=ENDPOINT,
            missing_fields=e.missing_fields,
        )
    except QuoteInputError as e:
        raise create_error_response(
            status_code=400,
            error=e.message,
            code=e.code,
            endpoint=ENDPOINT,
        )
    except EasyPostError as e:
        raise create_error_response(
            status_code=502,
            error=e.message,
            code=e.code,
            endpoint=ENDPOINT,
            exc=e,
        )
    except Exception as e:
        raise create_error_response(
            status_code=500,
            error="Unable to quote shipping at this time.",
            code=ErrorCode.INTERNAL_ERROR,
            endpoint=ENDPOINT,
            exc=e,
        )

    return QuoteResponse.from_result(result)
