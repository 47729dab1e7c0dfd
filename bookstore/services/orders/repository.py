"""
Order data access repository.

This module implements the OrderRepository class providing async methods for
loading orders by identifier, listing orders with filters, reading the status
history and persisting status changes. Optimistic-concurrency conflicts and
database failures are translated into repository errors with structured
logging.
"""

import uuid
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from bookstore.core.logging import get_logger
from bookstore.database.models.order import Order, OrderStatusHistory
from bookstore.services.orders.enums import OrderStatus

logger = get_logger(__name__)


class OrderRepositoryError(Exception):
    """Base exception for order repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class OrderNotFoundError(OrderRepositoryError):
    """Raised when order is not found."""

    pass


class InvalidOrderIdError(OrderRepositoryError):
    """Raised when an order identifier cannot be cast to a UUID."""

    pass


class OrderPersistenceError(OrderRepositoryError):
    """Raised when reading or writing orders fails."""

    pass


class ConcurrentUpdateError(OrderRepositoryError):
    """Raised when an order changed since it was loaded."""

    pass


def parse_order_id(order_id: str) -> uuid.UUID:
    """
    Cast a raw identifier to the order key type.

    Raises:
        InvalidOrderIdError: If order_id is not a well-formed UUID
    """
    if isinstance(order_id, uuid.UUID):
        return order_id
    try:
        return uuid.UUID(str(order_id))
    except (ValueError, AttributeError, TypeError) as e:
        raise InvalidOrderIdError(
            f"Invalid order ID format: {order_id}",
            order_id=str(order_id),
        ) from e


class OrderRepository:
    """
    Repository for order data access operations.

    Orders are loaded with their items. Status changes are written as a
    conditional update on the order version together with a history row
    in one commit.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def get_order_by_id(self, order_id: str) -> Optional[Order]:
        """
        Get order by ID with its items.

        Args:
            order_id: Raw order identifier from the caller

        Returns:
            Order if found, None otherwise

        Raises:
            InvalidOrderIdError: If order_id is malformed
            OrderPersistenceError: If query fails
        """
        key = parse_order_id(order_id)

        try:
            logger.debug("Fetching order by ID", order_id=str(key))

            stmt = select(Order).where(Order.id == key)
            result = await self.session.execute(stmt)
            order = result.scalar_one_or_none()

            if order:
                logger.debug("Order found", order_id=str(key))
            else:
                logger.debug("Order not found", order_id=str(key))

            return order

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order",
                order_id=str(key),
                error=str(e),
            )
            raise OrderPersistenceError(
                "Failed to fetch order",
                order_id=str(key),
                error=str(e),
            ) from e

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        List orders newest first with pagination.

        Args:
            status: Optional status filter
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (orders, total_count)

        Raises:
            OrderPersistenceError: If query fails
        """
        try:
            logger.debug(
                "Listing orders",
                status=status.value if status else None,
                skip=skip,
                limit=limit,
            )

            conditions = []
            if status:
                conditions.append(Order.status == status)

            stmt = (
                select(Order)
                .where(*conditions)
                .order_by(Order.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            count_stmt = select(func.count()).select_from(Order).where(*conditions)

            result = await self.session.execute(stmt)
            count_result = await self.session.execute(count_stmt)

            orders = result.scalars().all()
            total_count = count_result.scalar_one()

            logger.debug("Orders listed", count=len(orders), total=total_count)

            return orders, total_count

        except SQLAlchemyError as e:
            logger.error("Failed to list orders", error=str(e))
            raise OrderPersistenceError(
                "Failed to list orders",
                error=str(e),
            ) from e

    async def get_status_history(
        self,
        order_id: uuid.UUID,
    ) -> Sequence[OrderStatusHistory]:
        """
        Get status history for an order, oldest first.

        Raises:
            OrderPersistenceError: If query fails
        """
        try:
            stmt = (
                select(OrderStatusHistory)
                .where(OrderStatusHistory.order_id == order_id)
                .order_by(OrderStatusHistory.created_at.asc())
            )
            result = await self.session.execute(stmt)
            return result.scalars().all()

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order status history",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderPersistenceError(
                "Failed to fetch order status history",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def save_status_change(
        self,
        order: Order,
        previous_status: OrderStatus,
        changed_by: Optional[uuid.UUID],
        changed_at: datetime,
    ) -> Order:
        """
        Persist a status change made on a loaded order.

        The order row is updated only if its version still matches the one it
        was loaded with; a history row is written in the same commit.

        Args:
            order: Order already mutated in memory
            previous_status: Status before the change
            changed_by: Admin who made the change
            changed_at: Time of the change

        Returns:
            The persisted order

        Raises:
            ConcurrentUpdateError: If the order changed since it was loaded
            OrderPersistenceError: If the write fails
        """
        # Read before commit; a rollback expires the instance.
        order_key = order.id
        order_id = str(order_key)

        try:
            self.session.add(
                OrderStatusHistory(
                    order_id=order_key,
                    from_status=previous_status,
                    to_status=order.status,
                    changed_by=changed_by,
                    created_at=changed_at,
                )
            )
            await self.session.commit()

            logger.debug(
                "Order status change persisted",
                order_id=order_id,
                version=order.version,
            )

            return order

        except StaleDataError as e:
            await self.session.rollback()
            logger.warning(
                "Order changed concurrently",
                order_id=order_id,
                error=str(e),
            )
            raise ConcurrentUpdateError(
                "Order was modified by another request",
                order_id=order_id,
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Failed to persist order status change",
                order_id=order_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OrderPersistenceError(
                "Failed to persist order status change",
                order_id=order_id,
                error=str(e),
            ) from e

    async def rollback(self) -> None:
        """Discard pending changes and expire loaded orders."""
        await self.session.rollback()
