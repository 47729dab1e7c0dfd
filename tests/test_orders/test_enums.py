"""
Tests for the order status vocabulary, normalizer and validator.
"""

import pytest

from bookstore.services.orders.enums import (
    ORDER_STATUS_TRANSITIONS,
    InvalidStatusError,
    OrderStatus,
    get_allowed_order_transitions,
    normalize_status,
    validate_order_status_transition,
    validate_status,
)


# ============================================================================
# Vocabulary
# ============================================================================


class TestOrderStatusVocabulary:
    """Test the closed set of order statuses."""

    def test_values_in_lifecycle_order(self) -> None:
        assert OrderStatus.values() == [
            "Pending",
            "Processing",
            "Shipped",
            "Delivered",
            "Cancelled",
        ]

    def test_members_compare_equal_to_canonical_strings(self) -> None:
        assert OrderStatus.SHIPPED == "Shipped"
        assert OrderStatus("Delivered") is OrderStatus.DELIVERED

    def test_from_string_accepts_any_casing(self) -> None:
        assert OrderStatus.from_string("cAnCeLlEd") is OrderStatus.CANCELLED

    def test_from_string_rejects_unknown(self) -> None:
        with pytest.raises(InvalidStatusError):
            OrderStatus.from_string("returned")


# ============================================================================
# Normalizer
# ============================================================================


class TestNormalizeStatus:
    """Test canonical casing of status strings."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("shipped", "Shipped"),
            ("SHIPPED", "Shipped"),
            ("sHiPpEd", "Shipped"),
            ("Shipped", "Shipped"),
            ("p", "P"),
            ("  delivered ", "Delivered"),
        ],
    )
    def test_normalizes_casing(self, raw: str, expected: str) -> None:
        assert normalize_status(raw) == expected

    def test_does_not_check_membership(self) -> None:
        assert normalize_status("quux") == "Quux"

    def test_is_idempotent(self) -> None:
        once = normalize_status("pROCESSING")
        assert normalize_status(once) == once


# ============================================================================
# Validator
# ============================================================================


class TestValidateStatus:
    """Test vocabulary membership checks."""

    @pytest.mark.parametrize("value", OrderStatus.values())
    def test_accepts_every_member(self, value: str) -> None:
        assert validate_status(value).value == value

    def test_rejects_non_member_with_listing(self) -> None:
        with pytest.raises(InvalidStatusError) as exc_info:
            validate_status("Banana")

        error = exc_info.value
        assert error.status == "Banana"
        assert error.valid_statuses == OrderStatus.values()
        assert str(error) == (
            "Invalid status: Banana. Valid statuses are: "
            "Pending, Processing, Shipped, Delivered, Cancelled"
        )

    def test_is_case_sensitive_before_normalization(self) -> None:
        with pytest.raises(InvalidStatusError):
            validate_status("shipped")

    def test_invalid_status_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            validate_status("Lost")


# ============================================================================
# Lifecycle Graph
# ============================================================================


class TestLifecycleGraph:
    """Test the optional forward lifecycle graph."""

    def test_terminal_states_have_no_successors(self) -> None:
        assert ORDER_STATUS_TRANSITIONS[OrderStatus.DELIVERED] == set()
        assert ORDER_STATUS_TRANSITIONS[OrderStatus.CANCELLED] == set()

    @pytest.mark.parametrize(
        "current,new",
        [
            (OrderStatus.PENDING, OrderStatus.PROCESSING),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
        ],
    )
    def test_forward_edges_allowed(self, current, new) -> None:
        assert validate_order_status_transition(current, new) is True

    @pytest.mark.parametrize(
        "current,new",
        [
            (OrderStatus.DELIVERED, OrderStatus.PENDING),
            (OrderStatus.PENDING, OrderStatus.DELIVERED),
            (OrderStatus.CANCELLED, OrderStatus.PROCESSING),
        ],
    )
    def test_other_moves_rejected(self, current, new) -> None:
        assert validate_order_status_transition(current, new) is False

    def test_self_transition_always_allowed(self) -> None:
        for status in OrderStatus:
            assert validate_order_status_transition(status, status) is True

    def test_allowed_transitions_returns_copy(self) -> None:
        allowed = get_allowed_order_transitions(OrderStatus.PENDING)
        allowed.add(OrderStatus.DELIVERED)

        assert OrderStatus.DELIVERED not in ORDER_STATUS_TRANSITIONS[OrderStatus.PENDING]
