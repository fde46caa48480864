"""Error handling utilities for API endpoints."""

import logging

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict, Field

from shipquote.errors import ErrorCode

logger = logging.getLogger(__name__)

__all__ = ["ErrorCode", "ErrorResponse", "create_error_response", "log_api_error"]


class ErrorResponse(BaseModel):
    """Consistent error response format for all API errors."""

    model_config = ConfigDict(populate_by_name=True)

    error: str  # User-friendly message
    code: str  # Machine-readable error code
    detail: str | None = None  # Optional technical detail
    missing_fields: list[str] | None = Field(default=None, alias="missingFields")


def log_api_error(
    error: str,
    code: str,
    endpoint: str | None = None,
    order_id: str | None = None,
    exc: Exception | None = None,
) -> None:
    log_context = {
        "error_code": code,
        "order_id": order_id,
        "endpoint": endpoint,
    }
    if exc:
        logger.exception(
            "API error: %s (code=%s, order=%s, endpoint=%s)",
            error, code, order_id, endpoint,
            extra=log_context,
        )
    else:
        logger.warning(
            "API error: %s (code=%s, order=%s, endpoint=%s)",
            error, code, order_id, endpoint,
            extra=log_context,
        )


def create_error_response(
    status_code: int,
    error: str,
    code: str,
    detail: str | None = None,
    endpoint: str | None = None,
    order_id: str | None = None,
    missing_fields: list[str] | None = None,
    exc: Exception | None = None,
) -> HTTPException:
    """Create a consistent error response with logging."""
    log_api_error(error, code, endpoint=endpoint, order_id=order_id, exc=exc)
    body = ErrorResponse(error=error, code=code, detail=detail, missing_fields=missing_fields)
    return HTTPException(
        status_code=status_code,
        detail=body.model_dump(exclude_none=True, by_alias=True),
    )
