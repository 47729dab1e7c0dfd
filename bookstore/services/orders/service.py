"""
Order service orchestrating the admin order workflow.

This module implements the OrderService class used by the admin endpoints:
reading and listing orders, reading status history and changing an order's
status. A status change normalizes and validates the requested status, moves
the order through the state machine, persists it with a status history row
and records an audit entry.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Optional, Sequence, TypeVar

import structlog

from bookstore.core.logging import get_audit_logger, get_logger
from bookstore.database.models.order import Order, OrderStatusHistory
from bookstore.services.orders.enums import (
    InvalidStatusError,
    OrderStatus,
    normalize_status,
    validate_status,
)
from bookstore.services.orders.repository import (
    ConcurrentUpdateError,
    InvalidOrderIdError,
    OrderNotFoundError,
    OrderPersistenceError,
    OrderRepository,
    OrderRepositoryError,
)
from bookstore.services.orders.state_machine import (
    OrderStateMachine,
    StateTransitionError,
)

logger = get_logger(__name__)

T = TypeVar("T")

_DOMAIN_ERRORS = (
    InvalidStatusError,
    StateTransitionError,
    OrderRepositoryError,
)


class OrderServiceError(Exception):
    """Base exception for order service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class MissingFieldError(OrderServiceError):
    """Raised when a required request field is absent or blank."""

    def __init__(self, field: str, **context: Any):
        super().__init__(f"{field.capitalize()} is required", field=field, **context)
        self.field = field


class OrderService:
    """
    Order service for admin order operations.

    Attributes:
        repository: Order repository for data access
        state_machine: State machine applying status changes
        audit_logger: Logger receiving one entry per successful status change
        store_timeout: Optional bound in seconds on each store call
    """

    def __init__(
        self,
        repository: OrderRepository,
        state_machine: Optional[OrderStateMachine] = None,
        audit_logger: Optional[structlog.stdlib.BoundLogger] = None,
        store_timeout: Optional[float] = None,
    ):
        self.repository = repository
        self.state_machine = state_machine or OrderStateMachine()
        self.audit_logger = audit_logger or get_audit_logger()
        self.store_timeout = store_timeout

    async def update_order_status(
        self,
        order_id: str,
        status: Optional[str],
        admin_id: Optional[uuid.UUID] = None,
        expected_version: Optional[int] = None,
    ) -> Order:
        """
        Change an order's status.

        Args:
            order_id: Raw order identifier from the request path
            status: Requested status in any casing
            admin_id: Admin performing the change
            expected_version: Version the caller last saw, if any

        Returns:
            The updated order

        Raises:
            MissingFieldError: If status is absent or blank
            InvalidStatusError: If status is not in the vocabulary
            InvalidOrderIdError: If order_id is malformed
            OrderNotFoundError: If no order has that id
            ConcurrentUpdateError: If the order changed since expected_version
                or since it was loaded
            StateTransitionError: If the lifecycle graph rejects the move
            OrderPersistenceError: If the store fails or times out
            OrderServiceError: On any other failure
        """
        if status is None or not status.strip():
            raise MissingFieldError("status", order_id=str(order_id))

        target_status = validate_status(normalize_status(status))

        logger.info(
            "Updating order status",
            order_id=str(order_id),
            new_status=target_status.value,
            admin_id=str(admin_id) if admin_id else None,
        )

        try:
            order = await self._load_order(order_id)

            if expected_version is not None and order.version != expected_version:
                raise ConcurrentUpdateError(
                    f"Order version mismatch: expected {expected_version}, "
                    f"found {order.version}",
                    order_id=str(order.id),
                    expected_version=expected_version,
                    current_version=order.version,
                )

            changed_at = datetime.now(timezone.utc)
            previous_status = self.state_machine.apply_transition(
                order,
                target_status,
                user_id=admin_id,
                now=changed_at,
            )

            order = await self._call_store(
                self.repository.save_status_change(
                    order,
                    previous_status=previous_status,
                    changed_by=admin_id,
                    changed_at=changed_at,
                ),
                operation="save_status_change",
                order_id=str(order.id),
            )

        except StateTransitionError as e:
            logger.warning(
                "Invalid state transition",
                order_id=str(order_id),
                current_status=e.current_state.value,
                target_status=e.target_state.value,
            )
            raise

        except _DOMAIN_ERRORS:
            raise

        except Exception as e:
            logger.error(
                "Failed to update order status",
                order_id=str(order_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OrderServiceError(
                "Failed to update order status",
                order_id=str(order_id),
                error=str(e),
            ) from e

        self.audit_logger.info(
            "Order status changed",
            order_id=str(order.id),
            previous_status=previous_status.value,
            new_status=order.status.value,
            admin_id=str(admin_id) if admin_id else None,
        )

        return order

    async def get_order(self, order_id: str) -> Order:
        """
        Get a single order.

        Raises:
            InvalidOrderIdError: If order_id is malformed
            OrderNotFoundError: If order not found
            OrderPersistenceError: If retrieval fails
        """
        logger.debug("Retrieving order", order_id=str(order_id))
        return await self._load_order(order_id)

    async def list_orders(
        self,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        List orders newest first, optionally filtered by status.

        Args:
            status: Optional status filter in any casing
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (orders, total_count)

        Raises:
            InvalidStatusError: If status filter is not in the vocabulary
            OrderPersistenceError: If retrieval fails
        """
        status_filter: Optional[OrderStatus] = None
        if status is not None and status.strip():
            status_filter = validate_status(normalize_status(status))

        logger.debug(
            "Listing orders",
            status=status_filter.value if status_filter else None,
            skip=skip,
            limit=limit,
        )

        return await self._call_store(
            self.repository.list_orders(status=status_filter, skip=skip, limit=limit),
            operation="list_orders",
        )

    async def get_status_history(
        self,
        order_id: str,
    ) -> Sequence[OrderStatusHistory]:
        """
        Get status change history of an order, oldest first.

        Raises:
            InvalidOrderIdError: If order_id is malformed
            OrderNotFoundError: If order not found
            OrderPersistenceError: If retrieval fails
        """
        order = await self._load_order(order_id)
        return await self._call_store(
            self.repository.get_status_history(order.id),
            operation="get_status_history",
            order_id=str(order.id),
        )

    async def _load_order(self, order_id: str) -> Order:
        order = await self._call_store(
            self.repository.get_order_by_id(order_id),
            operation="get_order_by_id",
            order_id=str(order_id),
        )
        if order is None:
            raise OrderNotFoundError(
                f"Order with ID {order_id} not found",
                order_id=str(order_id),
            )
        return order

    async def _call_store(
        self,
        call: Awaitable[T],
        operation: str,
        **context: Any,
    ) -> T:
        """Await a repository call, bounded by the configured store timeout."""
        if self.store_timeout is None:
            return await call

        try:
            return await asyncio.wait_for(call, timeout=self.store_timeout)
        except asyncio.TimeoutError as e:
            await self.repository.rollback()
            logger.error(
                "Order store call timed out",
                operation=operation,
                timeout_seconds=self.store_timeout,
                **context,
            )
            raise OrderPersistenceError(
                f"Order store timed out during {operation}",
                operation=operation,
                timeout_seconds=self.store_timeout,
                **context,
            ) from e


__all__ = [
    "OrderService",
    "OrderServiceError",
    "MissingFieldError",
    "InvalidStatusError",
    "InvalidOrderIdError",
    "OrderNotFoundError",
    "OrderPersistenceError",
    "ConcurrentUpdateError",
    "StateTransitionError",
]
