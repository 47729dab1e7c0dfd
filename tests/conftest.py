"""
Pytest configuration and shared test fixtures.

This module provides the test client with database and service overrides,
an in-memory order repository, order and user factories, and bearer token
helpers shared by the test suite.
"""

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Generator, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

os.environ.setdefault("APP_ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

from bookstore.api.deps import get_order_service
from bookstore.core.rate_limit import limiter
from bookstore.core.security import create_access_token
from bookstore.database.connection import get_db
from bookstore.database.models import (
    Order,
    OrderItem,
    OrderStatusHistory,
    User,
    UserRole,
)
from bookstore.main import app
from bookstore.services.orders.enums import OrderStatus
from bookstore.services.orders.repository import (
    ConcurrentUpdateError,
    parse_order_id,
)
from bookstore.services.orders.service import OrderService
from bookstore.services.orders.state_machine import OrderStateMachine


# ============================================================================
# In-memory Order Store
# ============================================================================


class InMemoryOrderRepository:
    """
    Order repository keeping orders in a dict.

    Mirrors OrderRepository: ids are cast like the database would, saves
    bump the version and append a history row. ``fail_with`` makes the next
    save raise; ``conflict_on_save`` simulates a lost optimistic-lock race.
    """

    def __init__(self) -> None:
        self.orders: dict[UUID, Order] = {}
        self.history: list[OrderStatusHistory] = []
        self.save_count = 0
        self.rollback_count = 0
        self.fail_with: Optional[Exception] = None
        self.conflict_on_save = False

    def add(self, order: Order) -> Order:
        self.orders[order.id] = order
        return order

    async def get_order_by_id(self, order_id: str) -> Optional[Order]:
        return self.orders.get(parse_order_id(order_id))

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        orders = [o for o in self.orders.values() if status is None or o.status == status]
        orders.sort(key=lambda o: o.created_at, reverse=True)
        return orders[skip:skip + limit], len(orders)

    async def get_status_history(self, order_id: UUID) -> Sequence[OrderStatusHistory]:
        entries = [h for h in self.history if h.order_id == order_id]
        return sorted(entries, key=lambda h: h.created_at)

    async def save_status_change(
        self,
        order: Order,
        previous_status: OrderStatus,
        changed_by: Optional[UUID],
        changed_at: datetime,
    ) -> Order:
        if self.conflict_on_save:
            raise ConcurrentUpdateError(
                "Order was modified by another request",
                order_id=str(order.id),
            )
        if self.fail_with is not None:
            raise self.fail_with

        order.version += 1
        self.history.append(
            OrderStatusHistory(
                order_id=order.id,
                from_status=previous_status,
                to_status=order.status,
                changed_by=changed_by,
                created_at=changed_at,
            )
        )
        self.save_count += 1
        return order

    async def rollback(self) -> None:
        self.rollback_count += 1


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """Build a persisted-looking order with one line item."""

    def _make(
        status: OrderStatus = OrderStatus.PENDING,
        delivered_at: Optional[datetime] = None,
        version: int = 1,
        created_at: Optional[datetime] = None,
        **overrides: Any,
    ) -> Order:
        now = created_at or datetime.now(timezone.utc) - timedelta(days=1)
        order_id = overrides.pop("id", uuid4())
        return Order(
            id=order_id,
            user_id=overrides.pop("user_id", uuid4()),
            total_amount=overrides.pop("total_amount", Decimal("42.50")),
            status=status,
            is_delivered=status == OrderStatus.DELIVERED,
            delivered_at=delivered_at,
            version=version,
            created_at=now,
            updated_at=now,
            items=[
                OrderItem(
                    id=uuid4(),
                    order_id=order_id,
                    book_id=uuid4(),
                    title="The Left Hand of Darkness",
                    quantity=2,
                    unit_price=Decimal("21.25"),
                    position=0,
                )
            ],
            **overrides,
        )

    return _make


@pytest.fixture
def order_repository() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def audit_logger() -> MagicMock:
    return MagicMock()


@pytest.fixture
def enforce_transitions() -> bool:
    """Override in a test module to run with the strict lifecycle graph."""
    return False


@pytest.fixture
def order_service(
    order_repository: InMemoryOrderRepository,
    audit_logger: MagicMock,
    enforce_transitions: bool,
) -> OrderService:
    return OrderService(
        repository=order_repository,
        state_machine=OrderStateMachine(enforce_transitions=enforce_transitions),
        audit_logger=audit_logger,
    )


# ============================================================================
# Users and Tokens
# ============================================================================


@pytest.fixture
def admin_user() -> User:
    return User(
        id=uuid4(),
        email="admin@bookstore.test",
        name="Store Admin",
        role=UserRole.ADMIN,
        is_active=True,
    )


@pytest.fixture
def customer_user() -> User:
    return User(
        id=uuid4(),
        email="reader@bookstore.test",
        name="Reader",
        role=UserRole.USER,
        is_active=True,
    )


@pytest.fixture
def users(admin_user: User, customer_user: User) -> dict[UUID, User]:
    return {admin_user.id: admin_user, customer_user.id: customer_user}


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Build an Authorization header carrying a token for user."""

    def _headers(user: User, **claims: Any) -> dict[str, str]:
        token = create_access_token({"sub": str(user.id), **claims})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(auth_headers, admin_user: User) -> dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture
def customer_headers(auth_headers, customer_user: User) -> dict[str, str]:
    return auth_headers(customer_user)


# ============================================================================
# Test Client
# ============================================================================


@pytest.fixture
def mock_db_session(users: dict[UUID, User]) -> MagicMock:
    """Session stand-in resolving users by primary key."""
    session = MagicMock()
    session.get = AsyncMock(side_effect=lambda model, key: users.get(key))
    return session


@pytest.fixture(scope="function")
def test_client(
    mock_db_session: MagicMock,
    order_service: OrderService,
) -> Generator[TestClient, None, None]:
    """
    Synchronous test client with database and order service overrides.

    Example:
        def test_health_endpoint(test_client):
            response = test_client.get("/health")
            assert response.status_code == 200
    """

    async def override_get_db():
        yield mock_db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_order_service] = lambda: order_service
    limiter.reset()

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
