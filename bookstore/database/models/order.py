"""
Order model for bookstore purchases and their status lifecycle.

This module defines the Order model, its line items and the persisted
status history. Orders carry an integer version column used as an
optimistic-concurrency token: every flush of a changed order is a
conditional UPDATE on the version it was loaded with.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookstore.database.base import BaseModel
from bookstore.services.orders.enums import OrderStatus

if TYPE_CHECKING:
    from bookstore.database.models.user import User


def _order_status_enum(name: str) -> SQLEnum:
    return SQLEnum(
        OrderStatus,
        name=name,
        native_enum=False,
        length=20,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )


class Order(BaseModel):
    """
    Placed purchase with a lifecycle status.

    Attributes:
        id: Unique order identifier (UUID)
        user_id: Customer who placed the order
        items: Ordered line items
        total_amount: Total order amount
        status: Current status in canonical casing
        is_delivered: True exactly when status is Delivered
        delivered_at: First time the order entered Delivered
        version: Optimistic-concurrency token
        created_at: Record creation timestamp (from BaseModel)
        updated_at: Last modification timestamp (from BaseModel)
    """

    __tablename__ = "orders"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="User who placed the order",
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Total order amount including shipping and tax",
    )

    status: Mapped[OrderStatus] = mapped_column(
        _order_status_enum("order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
        comment="Current order status",
    )

    is_delivered: Mapped[bool] = mapped_column(
        nullable=False,
        default=False,
        comment="Whether the order is currently delivered",
    )

    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Timestamp of first delivery; never cleared",
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Optimistic-concurrency version counter",
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    status_history: Mapped[list["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        order_by="OrderStatusHistory.created_at",
        cascade="all, delete-orphan",
        lazy="noload",
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="orders",
        foreign_keys=[user_id],
        lazy="noload",
    )

    __mapper_args__ = {
        "version_id_col": version,
        "eager_defaults": True,
    }

    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
        CheckConstraint(
            "total_amount >= 0",
            name="ck_orders_total_amount_non_negative",
        ),
        CheckConstraint(
            "(status = 'Delivered') = is_delivered",
            name="ck_orders_delivered_flag_matches_status",
        ),
        {"comment": "Customer orders"},
    )

    def __repr__(self) -> str:
        status = self.status.value if self.status else None
        return f"<Order(id={self.id}, status={status}, version={self.version})>"


class OrderItem(BaseModel):
    """
    Line item in an order.

    Attributes:
        order_id: Parent order
        book_id: Catalog book reference
        title: Book title at the time of purchase
        quantity: Number of copies
        unit_price: Price per copy
        position: Ordering of the line within the order
    """

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Parent order identifier",
    )

    book_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
        comment="Catalog book identifier",
    )

    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        default="",
        comment="Book title snapshot",
    )

    quantity: Mapped[int] = mapped_column(
        nullable=False,
        default=1,
        comment="Number of copies",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Price per copy",
    )

    position: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
        comment="Line position within the order",
    )

    order: Mapped["Order"] = relationship(
        "Order",
        back_populates="items",
        foreign_keys=[order_id],
        lazy="noload",
    )

    __table_args__ = (
        CheckConstraint(
            "quantity >= 1",
            name="ck_order_items_quantity_positive",
        ),
        CheckConstraint(
            "unit_price >= 0",
            name="ck_order_items_unit_price_non_negative",
        ),
        {"comment": "Individual items in an order"},
    )


class OrderStatusHistory(BaseModel):
    """
    Persisted audit trail of status changes.

    Attributes:
        order_id: Parent order
        from_status: Status before the change
        to_status: Status after the change
        changed_by: Admin who made the change
    """

    __tablename__ = "order_status_history"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        comment="Parent order identifier",
    )

    from_status: Mapped[OrderStatus] = mapped_column(
        _order_status_enum("order_status_from"),
        nullable=False,
        comment="Previous status",
    )

    to_status: Mapped[OrderStatus] = mapped_column(
        _order_status_enum("order_status_to"),
        nullable=False,
        comment="New status",
    )

    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Admin who made the change",
    )

    order: Mapped["Order"] = relationship(
        "Order",
        back_populates="status_history",
        foreign_keys=[order_id],
        lazy="noload",
    )

    __table_args__ = (
        Index(
            "ix_order_status_history_order_created",
            "order_id",
            "created_at",
        ),
        {"comment": "Order status change history for audit trail"},
    )

    def __repr__(self) -> str:
        return (
            f"<OrderStatusHistory(order_id={self.order_id}, "
            f"from_status={self.from_status.value}, to_status={self.to_status.value})>"
        )
