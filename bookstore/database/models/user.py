"""
User model for principal resolution and role checks.

Accounts are created and authenticated by the storefront; this service
reads them to resolve the caller behind a bearer token and to check that
the caller holds the admin role.
"""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Enum as SQLEnum
from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookstore.database.base import BaseModel

if TYPE_CHECKING:
    from bookstore.database.models.order import Order


class UserRole(str, enum.Enum):
    """User role enumeration for role-based access control."""

    USER = "user"
    ADMIN = "admin"


class User(BaseModel):
    """
    Storefront account.

    Attributes:
        id: Unique user identifier (UUID)
        email: User email address (unique)
        name: Display name
        role: Role used for authorization
        is_active: Account active status
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="User email address",
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Display name",
    )

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            name="user_role",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=UserRole.USER,
        comment="User role for access control",
    )

    is_active: Mapped[bool] = mapped_column(
        default=True,
        nullable=False,
        comment="Account active status",
    )

    orders: Mapped[list["Order"]] = relationship(
        "Order",
        back_populates="user",
        foreign_keys="Order.user_id",
        lazy="noload",
    )

    __table_args__ = (
        Index("ix_users_role_active", "role", "is_active"),
        {"comment": "Storefront accounts"},
    )

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, email='{self.email}', "
            f"role={self.role.value}, is_active={self.is_active})>"
        )

    @property
    def is_admin(self) -> bool:
        """Check if user holds the admin role."""
        return self.role == UserRole.ADMIN
