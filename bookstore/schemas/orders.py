"""
Admin order Pydantic schemas for API request/response validation.

Responses are serialized with camelCase keys; requests accept either
camelCase or snake_case field names.
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from bookstore.services.orders.enums import OrderStatus


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class OrderStatusUpdateRequest(CamelModel):
    """Request schema for changing an order's status."""

    status: Optional[str] = Field(
        None,
        description="New order status in any casing",
        examples=["shipped"],
    )
    version: Optional[int] = Field(
        None,
        ge=1,
        description="Order version last seen by the caller",
    )

    @field_validator("status", mode="before")
    @classmethod
    def stringify_status(cls, v: Any) -> Optional[str]:
        """Pass non-string statuses on as text so the vocabulary check rejects them."""
        if v is None or isinstance(v, str):
            return v
        return json.dumps(v)


class OrderItemResponse(CamelModel):
    """Order line item response."""

    book_id: UUID
    title: str
    quantity: int
    unit_price: float


class OrderResponse(CamelModel):
    """Order response schema."""

    id: UUID
    user_id: UUID
    items: list[OrderItemResponse] = Field(default_factory=list)
    total_amount: float
    status: OrderStatus
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    version: int


class OrderStatusUpdateResponse(CamelModel):
    """Envelope returned after a successful status change."""

    success: bool = True
    message: str
    order: OrderResponse


class OrderDetailResponse(CamelModel):
    """Envelope for a single order."""

    success: bool = True
    order: OrderResponse


class OrderListResponse(CamelModel):
    """Envelope for a page of orders."""

    success: bool = True
    orders: list[OrderResponse]
    total: int
    skip: int
    limit: int


class StatusHistoryEntry(CamelModel):
    """One recorded status change."""

    from_status: OrderStatus
    to_status: OrderStatus
    changed_by: Optional[UUID] = None
    created_at: datetime


class StatusHistoryResponse(CamelModel):
    """Envelope for an order's status history."""

    success: bool = True
    history: list[StatusHistoryEntry]


class ErrorEnvelope(CamelModel):
    """Failure envelope for admin order endpoints."""

    success: bool = False
    message: str
