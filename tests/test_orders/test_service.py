"""
Tests for OrderService.

Covers the status update workflow end to end against the in-memory order
store: presence and vocabulary checks, lookup failures, optimistic
concurrency, persistence failures, store timeouts and audit logging.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from bookstore.services.orders.enums import InvalidStatusError, OrderStatus
from bookstore.services.orders.repository import (
    ConcurrentUpdateError,
    InvalidOrderIdError,
    OrderNotFoundError,
    OrderPersistenceError,
)
from bookstore.services.orders.service import (
    MissingFieldError,
    OrderService,
    OrderServiceError,
)
from bookstore.services.orders.state_machine import (
    OrderStateMachine,
    StateTransitionError,
)


# ============================================================================
# Status Update
# ============================================================================


class TestUpdateOrderStatus:
    """Test the status update workflow."""

    async def test_updates_status_case_insensitively(
        self, order_service, order_repository, make_order
    ) -> None:
        order = order_repository.add(make_order())

        updated = await order_service.update_order_status(
            str(order.id), "sHiPpEd", admin_id=uuid4()
        )

        assert updated.status is OrderStatus.SHIPPED
        assert updated.is_delivered is False
        assert updated.version == 2
        assert order_repository.save_count == 1

    async def test_delivered_stamps_delivery_time(
        self, order_service, order_repository, make_order
    ) -> None:
        order = order_repository.add(make_order(status=OrderStatus.SHIPPED))
        before = datetime.now(timezone.utc)

        updated = await order_service.update_order_status(str(order.id), "delivered")

        assert updated.is_delivered is True
        assert updated.delivered_at >= before

    async def test_second_delivery_keeps_original_time(
        self, order_service, order_repository, make_order
    ) -> None:
        first = datetime(2026, 2, 1, tzinfo=timezone.utc)
        order = order_repository.add(
            make_order(status=OrderStatus.DELIVERED, delivered_at=first)
        )

        updated = await order_service.update_order_status(str(order.id), "Delivered")

        assert updated.delivered_at == first

    async def test_records_history_row(
        self, order_service, order_repository, make_order
    ) -> None:
        order = order_repository.add(make_order(status=OrderStatus.PROCESSING))
        admin_id = uuid4()

        await order_service.update_order_status(str(order.id), "shipped", admin_id=admin_id)

        [entry] = order_repository.history
        assert entry.order_id == order.id
        assert entry.from_status is OrderStatus.PROCESSING
        assert entry.to_status is OrderStatus.SHIPPED
        assert entry.changed_by == admin_id

    async def test_emits_one_audit_entry(
        self, order_service, order_repository, audit_logger, make_order
    ) -> None:
        order = order_repository.add(make_order())
        admin_id = uuid4()

        await order_service.update_order_status(str(order.id), "processing", admin_id=admin_id)

        audit_logger.info.assert_called_once_with(
            "Order status changed",
            order_id=str(order.id),
            previous_status="Pending",
            new_status="Processing",
            admin_id=str(admin_id),
        )

    @pytest.mark.parametrize("status", [None, "", "   "])
    async def test_missing_status(
        self, order_service, order_repository, audit_logger, make_order, status
    ) -> None:
        order = order_repository.add(make_order())

        with pytest.raises(MissingFieldError) as exc_info:
            await order_service.update_order_status(str(order.id), status)

        assert str(exc_info.value) == "Status is required"
        assert order_repository.save_count == 0
        audit_logger.info.assert_not_called()

    async def test_invalid_status_leaves_order_untouched(
        self, order_service, order_repository, audit_logger, make_order
    ) -> None:
        order = order_repository.add(make_order())

        with pytest.raises(InvalidStatusError) as exc_info:
            await order_service.update_order_status(str(order.id), "banana")

        assert exc_info.value.status == "Banana"
        assert order.status is OrderStatus.PENDING
        assert order_repository.save_count == 0
        audit_logger.info.assert_not_called()

    async def test_invalid_status_checked_before_lookup(self, order_service) -> None:
        with pytest.raises(InvalidStatusError):
            await order_service.update_order_status("not-an-id", "banana")

    async def test_malformed_id(self, order_service) -> None:
        with pytest.raises(InvalidOrderIdError) as exc_info:
            await order_service.update_order_status("not-an-id", "shipped")

        assert str(exc_info.value) == "Invalid order ID format: not-an-id"

    async def test_unknown_order(self, order_service, order_repository) -> None:
        missing = uuid4()

        with pytest.raises(OrderNotFoundError) as exc_info:
            await order_service.update_order_status(str(missing), "shipped")

        assert str(exc_info.value) == f"Order with ID {missing} not found"
        assert order_repository.save_count == 0

    async def test_stale_expected_version(
        self, order_service, order_repository, audit_logger, make_order
    ) -> None:
        order = order_repository.add(make_order(version=3))

        with pytest.raises(ConcurrentUpdateError):
            await order_service.update_order_status(
                str(order.id), "shipped", expected_version=2
            )

        assert order.status is OrderStatus.PENDING
        assert order_repository.save_count == 0
        audit_logger.info.assert_not_called()

    async def test_matching_expected_version(
        self, order_service, order_repository, make_order
    ) -> None:
        order = order_repository.add(make_order(version=3))

        updated = await order_service.update_order_status(
            str(order.id), "shipped", expected_version=3
        )

        assert updated.version == 4

    async def test_lost_race_propagates(
        self, order_service, order_repository, audit_logger, make_order
    ) -> None:
        order = order_repository.add(make_order())
        order_repository.conflict_on_save = True

        with pytest.raises(ConcurrentUpdateError):
            await order_service.update_order_status(str(order.id), "shipped")

        audit_logger.info.assert_not_called()

    async def test_persistence_failure_propagates(
        self, order_service, order_repository, audit_logger, make_order
    ) -> None:
        order = order_repository.add(make_order())
        order_repository.fail_with = OrderPersistenceError("disk full")

        with pytest.raises(OrderPersistenceError):
            await order_service.update_order_status(str(order.id), "shipped")

        audit_logger.info.assert_not_called()

    async def test_unexpected_failure_is_wrapped(
        self, order_service, order_repository, make_order
    ) -> None:
        order = order_repository.add(make_order())
        order_repository.fail_with = RuntimeError("boom")

        with pytest.raises(OrderServiceError) as exc_info:
            await order_service.update_order_status(str(order.id), "shipped")

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.context["error"] == "boom"


class TestStrictTransitions:
    """Test the service with the lifecycle graph enforced."""

    @pytest.fixture
    def enforce_transitions(self) -> bool:
        return True

    async def test_rejects_backward_move(
        self, order_service, order_repository, audit_logger, make_order
    ) -> None:
        order = order_repository.add(make_order(status=OrderStatus.DELIVERED))

        with pytest.raises(StateTransitionError):
            await order_service.update_order_status(str(order.id), "pending")

        assert order.status is OrderStatus.DELIVERED
        assert order_repository.save_count == 0
        audit_logger.info.assert_not_called()

    async def test_allows_forward_move(
        self, order_service, order_repository, make_order
    ) -> None:
        order = order_repository.add(make_order(status=OrderStatus.SHIPPED))

        updated = await order_service.update_order_status(str(order.id), "delivered")

        assert updated.status is OrderStatus.DELIVERED


# ============================================================================
# Store Timeout
# ============================================================================


class TestStoreTimeout:
    """Test bounding of store calls."""

    @pytest.fixture
    def slow_repository(self) -> MagicMock:
        async def never_returns(order_id):
            await asyncio.sleep(10)

        repository = MagicMock()
        repository.get_order_by_id = AsyncMock(side_effect=never_returns)
        repository.rollback = AsyncMock()
        return repository

    async def test_timeout_becomes_persistence_error(
        self, slow_repository: MagicMock
    ) -> None:
        audit_logger = MagicMock()
        service = OrderService(
            repository=slow_repository,
            state_machine=OrderStateMachine(),
            audit_logger=audit_logger,
            store_timeout=0.01,
        )

        with pytest.raises(OrderPersistenceError) as exc_info:
            await service.update_order_status(str(uuid4()), "shipped")

        assert exc_info.value.context["operation"] == "get_order_by_id"
        slow_repository.rollback.assert_awaited_once()
        audit_logger.info.assert_not_called()


# ============================================================================
# Reads
# ============================================================================


class TestReads:
    """Test order lookup, listing and history."""

    async def test_get_order(self, order_service, order_repository, make_order) -> None:
        order = order_repository.add(make_order())

        assert await order_service.get_order(str(order.id)) is order

    async def test_get_order_not_found(self, order_service) -> None:
        with pytest.raises(OrderNotFoundError):
            await order_service.get_order(str(uuid4()))

    async def test_list_orders_filters_by_normalized_status(
        self, order_service, order_repository, make_order
    ) -> None:
        shipped = order_repository.add(make_order(status=OrderStatus.SHIPPED))
        order_repository.add(make_order(status=OrderStatus.PENDING))

        orders, total = await order_service.list_orders(status="SHIPPED")

        assert total == 1
        assert list(orders) == [shipped]

    async def test_list_orders_rejects_unknown_status(self, order_service) -> None:
        with pytest.raises(InvalidStatusError):
            await order_service.list_orders(status="lost")

    async def test_list_orders_without_filter(
        self, order_service, order_repository, make_order
    ) -> None:
        older = order_repository.add(
            make_order(created_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
        )
        newer = order_repository.add(
            make_order(created_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
        )

        orders, total = await order_service.list_orders(status="")

        assert total == 2
        assert list(orders) == [newer, older]

    async def test_history_after_updates(
        self, order_service, order_repository, make_order
    ) -> None:
        order = order_repository.add(make_order())
        await order_service.update_order_status(str(order.id), "processing")
        await order_service.update_order_status(str(order.id), "shipped")

        history = await order_service.get_status_history(str(order.id))

        assert [(h.from_status, h.to_status) for h in history] == [
            (OrderStatus.PENDING, OrderStatus.PROCESSING),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
        ]

    async def test_history_for_malformed_id(self, order_service) -> None:
        with pytest.raises(InvalidOrderIdError):
            await order_service.get_status_history("42")
