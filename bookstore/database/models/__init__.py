"""
Database models package initialization.

Models are imported here so they register with the Base metadata for
Alembic and relationship resolution.
"""

from bookstore.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from bookstore.database.models.order import Order, OrderItem, OrderStatusHistory
from bookstore.database.models.user import User, UserRole

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "User",
    "UserRole",
]
