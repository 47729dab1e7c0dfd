"""Order status vocabulary, normalization and validation.

This module defines the closed set of order states, the normalizer that
maps arbitrary-case input onto the canonical spelling, and the validator
that checks membership. An optional forward lifecycle graph is provided
for deployments that restrict which status may follow which.
"""

from enum import Enum
from typing import Any, Dict, List, Set


class InvalidStatusError(ValueError):
    """Raised when a status is not a member of the order status vocabulary."""

    def __init__(self, status: str, valid_statuses: List[str], **context: Any):
        super().__init__(
            f"Invalid status: {status}. "
            f"Valid statuses are: {', '.join(valid_statuses)}"
        )
        self.status = status
        self.valid_statuses = valid_statuses
        self.context = context


class OrderStatus(str, Enum):
    """Order lifecycle status in canonical casing.

    Forward lifecycle:
    - PENDING -> PROCESSING, CANCELLED
    - PROCESSING -> SHIPPED, CANCELLED
    - SHIPPED -> DELIVERED, CANCELLED
    - DELIVERED -> (terminal state)
    - CANCELLED -> (terminal state)
    """

    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"

    @classmethod
    def values(cls) -> List[str]:
        """Canonical status labels in lifecycle order."""
        return [s.value for s in cls]

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert arbitrary-case input to OrderStatus.

        Args:
            value: Status label in any casing

        Returns:
            OrderStatus enum value

        Raises:
            InvalidStatusError: If value is not a valid status
        """
        return validate_status(normalize_status(value))


ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


def normalize_status(value: str) -> str:
    """Map a status string onto canonical casing.

    Upper-cases the first character and lower-cases the rest. Membership
    is not checked, so ``"quux"`` becomes ``"Quux"``.

    Args:
        value: Non-empty status string in any casing

    Returns:
        Canonically cased string
    """
    value = value.strip()
    return value[:1].upper() + value[1:].lower()


def validate_status(value: str) -> OrderStatus:
    """Check that a normalized status belongs to the vocabulary.

    Args:
        value: Status string already passed through ``normalize_status``

    Returns:
        Matching OrderStatus

    Raises:
        InvalidStatusError: If value is not an exact vocabulary member
    """
    try:
        return OrderStatus(value)
    except ValueError as e:
        raise InvalidStatusError(value, OrderStatus.values()) from e


def validate_order_status_transition(
    current: OrderStatus,
    new: OrderStatus,
) -> bool:
    """Check a move against the forward lifecycle graph.

    Re-applying the current status is always allowed.
    """
    if current == new:
        return True
    return new in ORDER_STATUS_TRANSITIONS.get(current, set())


def get_allowed_order_transitions(current: OrderStatus) -> Set[OrderStatus]:
    """Get all statuses reachable in one step from current."""
    return ORDER_STATUS_TRANSITIONS.get(current, set()).copy()
