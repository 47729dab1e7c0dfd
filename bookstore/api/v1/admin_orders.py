"""
Admin order API endpoints.

This module implements the FastAPI router used by store administrators to
list and inspect orders and to change an order's status. Every route sits
behind the admin gate; failures are answered with a
``{"success": false, "message": ...}`` envelope.
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from bookstore.api.deps import CurrentAdmin, OrderServiceDep, require_admin
from bookstore.core.logging import get_logger
from bookstore.core.rate_limit import limiter, status_update_limit
from bookstore.schemas.orders import (
    ErrorEnvelope,
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
    OrderStatusUpdateResponse,
    StatusHistoryEntry,
    StatusHistoryResponse,
)
from bookstore.services.orders.service import (
    ConcurrentUpdateError,
    InvalidOrderIdError,
    InvalidStatusError,
    MissingFieldError,
    OrderNotFoundError,
    StateTransitionError,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/admin/orders",
    tags=["admin-orders"],
    dependencies=[Depends(require_admin)],
)

_ERROR_RESPONSES = {
    400: {"model": ErrorEnvelope, "description": "Invalid request"},
    401: {"description": "Unauthorized"},
    404: {"model": ErrorEnvelope, "description": "Order not found"},
    500: {"model": ErrorEnvelope, "description": "Internal error"},
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorEnvelope(message=message).model_dump(by_alias=True),
    )


def _client_error(e: Exception) -> Optional[JSONResponse]:
    """Map a domain error to its response, or None for server-side failures."""
    if isinstance(e, (MissingFieldError, InvalidStatusError, InvalidOrderIdError)):
        return _error(status.HTTP_400_BAD_REQUEST, str(e))
    if isinstance(e, OrderNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, str(e))
    if isinstance(e, (ConcurrentUpdateError, StateTransitionError)):
        return _error(status.HTTP_409_CONFLICT, str(e))
    return None


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="List orders newest first with an optional status filter",
    responses=_ERROR_RESPONSES,
)
async def list_orders(
    admin: CurrentAdmin,
    service: OrderServiceDep,
    status_filter: Optional[str] = Query(
        None,
        alias="status",
        description="Status filter in any casing",
    ),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Maximum records to return"),
):
    try:
        orders, total = await service.list_orders(
            status=status_filter,
            skip=skip,
            limit=limit,
        )
    except Exception as e:
        response = _client_error(e)
        if response is not None:
            logger.warning(
                "Order listing rejected",
                status=status_filter,
                error=str(e),
            )
            return response
        logger.error(
            "Failed to list orders",
            admin_id=str(admin.id),
            error=str(e),
            error_type=type(e).__name__,
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to retrieve orders")

    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/{order_id}",
    response_model=OrderDetailResponse,
    summary="Get order",
    responses=_ERROR_RESPONSES,
)
async def get_order(
    order_id: str,
    admin: CurrentAdmin,
    service: OrderServiceDep,
):
    try:
        order = await service.get_order(order_id)
    except Exception as e:
        response = _client_error(e)
        if response is not None:
            logger.warning("Order lookup rejected", order_id=order_id, error=str(e))
            return response
        logger.error(
            "Failed to retrieve order",
            order_id=order_id,
            admin_id=str(admin.id),
            error=str(e),
            error_type=type(e).__name__,
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to retrieve order")

    return OrderDetailResponse(order=OrderResponse.model_validate(order))


@router.get(
    "/{order_id}/history",
    response_model=StatusHistoryResponse,
    summary="Get order status history",
    responses=_ERROR_RESPONSES,
)
async def get_order_history(
    order_id: str,
    admin: CurrentAdmin,
    service: OrderServiceDep,
):
    try:
        history = await service.get_status_history(order_id)
    except Exception as e:
        response = _client_error(e)
        if response is not None:
            logger.warning("Order history lookup rejected", order_id=order_id, error=str(e))
            return response
        logger.error(
            "Failed to retrieve order history",
            order_id=order_id,
            admin_id=str(admin.id),
            error=str(e),
            error_type=type(e).__name__,
        )
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to retrieve order history",
        )

    return StatusHistoryResponse(
        history=[StatusHistoryEntry.model_validate(entry) for entry in history]
    )


async def _read_status_update(request: Request) -> OrderStatusUpdateRequest:
    """
    Parse the status update body.

    Read inside the handler so the admin gate answers before the body is
    looked at. An empty body is treated as one with no fields.

    Raises:
        ValueError: If the body is not valid JSON
        RequestValidationError: If the body does not match the request schema
    """
    raw = await request.body()
    data = json.loads(raw) if raw.strip() else None
    if data is None:
        return OrderStatusUpdateRequest()
    try:
        return OrderStatusUpdateRequest.model_validate(data)
    except ValidationError as e:
        errors = [{**error, "loc": ("body", *error["loc"])} for error in e.errors()]
        raise RequestValidationError(errors, body=data) from e


@router.put(
    "/{order_id}/status",
    response_model=OrderStatusUpdateResponse,
    summary="Update order status",
    description="Change an order's status; the status is accepted in any casing",
    responses={**_ERROR_RESPONSES, 409: {"model": ErrorEnvelope, "description": "Conflict"}},
    openapi_extra={
        "requestBody": {
            "required": False,
            "content": {
                "application/json": {
                    "schema": OrderStatusUpdateRequest.model_json_schema(by_alias=True),
                },
            },
        },
    },
)
@limiter.limit(status_update_limit)
async def update_order_status(
    request: Request,
    order_id: str,
    admin: CurrentAdmin,
    service: OrderServiceDep,
):
    """
    Update order status.

    Returns the updated order wrapped in a success envelope. Client errors
    (missing or invalid status, malformed id, unknown order, version
    conflict) are answered with their own status codes; any other failure
    is logged and answered with a generic 500.
    """
    try:
        payload = await _read_status_update(request)
    except ValueError as e:
        logger.warning(
            "Malformed order status update body",
            order_id=order_id,
            error=str(e),
        )
        return _error(status.HTTP_400_BAD_REQUEST, "Request body must be valid JSON")

    requested = payload.status
    expected_version = payload.version

    try:
        order = await service.update_order_status(
            order_id=order_id,
            status=requested,
            admin_id=admin.id,
            expected_version=expected_version,
        )
    except Exception as e:
        response = _client_error(e)
        if response is not None:
            logger.warning(
                "Order status update rejected",
                order_id=order_id,
                requested_status=requested,
                error=str(e),
                error_type=type(e).__name__,
            )
            return response
        logger.error(
            "Failed to update order status",
            order_id=order_id,
            admin_id=str(admin.id),
            error=str(e),
            error_type=type(e).__name__,
            context=getattr(e, "context", None),
        )
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to update order status",
        )

    return OrderStatusUpdateResponse(
        message=f"Order status updated to {order.status.value}",
        order=OrderResponse.model_validate(order),
    )
