"""Order state machine with transition validation and side effects.

This module implements the OrderStateMachine class that moves an order to
a new status in memory. Persistence and history records are owned by the
order service; the state machine only validates and mutates.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set
from uuid import UUID

from bookstore.core.config import get_settings
from bookstore.core.logging import get_logger
from bookstore.services.orders.enums import (
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)

logger = get_logger(__name__)


class StateTransitionError(Exception):
    """Raised when a status change is not allowed from the current state."""

    def __init__(
        self,
        message: str,
        current_state: OrderStatus,
        target_state: OrderStatus,
        **context: Any
    ):
        super().__init__(message)
        self.current_state = current_state
        self.target_state = target_state
        self.context = context


class OrderStateMachine:
    """State machine for order status changes.

    By default any status may follow any other. When ``enforce_transitions``
    is set, moves are checked against the forward lifecycle graph.
    """

    def __init__(self, enforce_transitions: bool = False):
        self.enforce_transitions = enforce_transitions
        self._side_effects: Dict[
            OrderStatus,
            Callable[[Any, datetime], None]
        ] = {
            OrderStatus.DELIVERED: self._effect_delivered,
            OrderStatus.CANCELLED: self._effect_cancelled,
        }

    def validate_transition(
        self,
        order: Any,
        target_status: OrderStatus,
    ) -> bool:
        """Validate that the order may move to target_status.

        Raises:
            StateTransitionError: If the lifecycle graph is enforced and
                the move is not an edge of it
        """
        current_status = order.status

        if not self.enforce_transitions:
            return True

        if not validate_order_status_transition(current_status, target_status):
            allowed = get_allowed_order_transitions(current_status)
            raise StateTransitionError(
                f"Invalid transition from {current_status.value} to "
                f"{target_status.value}",
                current_state=current_status,
                target_state=target_status,
                allowed_transitions=sorted(s.value for s in allowed),
            )

        return True

    def apply_transition(
        self,
        order: Any,
        target_status: OrderStatus,
        user_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> OrderStatus:
        """Move order to target_status and run status side effects.

        Args:
            order: Order instance to mutate
            target_status: Validated target status
            user_id: Admin initiating the change
            now: Clock reading to stamp with, defaults to current UTC time

        Returns:
            The status the order held before the change

        Raises:
            StateTransitionError: If the transition is rejected
        """
        self.validate_transition(order, target_status)

        now = now or datetime.now(timezone.utc)
        previous_status = order.status

        order.status = target_status
        order.updated_at = now
        order.is_delivered = target_status == OrderStatus.DELIVERED

        side_effect = self._side_effects.get(target_status)
        if side_effect is not None:
            side_effect(order, now)

        logger.debug(
            "State transition applied",
            order_id=str(order.id),
            transition=f"{previous_status.value}->{target_status.value}",
            user_id=str(user_id) if user_id else None,
        )

        return previous_status

    def get_allowed_transitions(self, order: Any) -> Set[OrderStatus]:
        """Statuses the order may move to next."""
        if not self.enforce_transitions:
            return set(OrderStatus)
        return get_allowed_order_transitions(order.status) | {order.status}

    # Side Effects

    def _effect_delivered(self, order: Any, now: datetime) -> None:
        """Stamp the first delivery time; a re-delivery keeps the original."""
        if order.delivered_at is None:
            order.delivered_at = now
            logger.info(
                "Order delivered",
                order_id=str(order.id),
                delivered_at=now.isoformat(),
            )

    def _effect_cancelled(self, order: Any, now: datetime) -> None:
        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            cancelled_at=now.isoformat(),
        )


def get_order_state_machine() -> OrderStateMachine:
    """Build a state machine configured from application settings."""
    settings = get_settings()
    return OrderStateMachine(
        enforce_transitions=settings.enforce_status_transitions
    )
