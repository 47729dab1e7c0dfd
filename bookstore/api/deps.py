"""
FastAPI dependencies for authentication, authorization and services.

This module provides dependency functions for bearer-token authentication,
the admin role check, database session injection and order service
construction.
"""

from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookstore.core.config import get_settings
from bookstore.core.logging import get_logger, set_user_id
from bookstore.core.security import TokenError, decode_token
from bookstore.database.connection import get_db
from bookstore.database.models.user import User
from bookstore.services.orders.repository import OrderRepository
from bookstore.services.orders.service import OrderService
from bookstore.services.orders.state_machine import get_order_state_machine

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)

DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


class UnauthorizedError(Exception):
    """Raised when the caller is not an authenticated admin."""

    def __init__(self, reason: str, **context: Any):
        super().__init__("Unauthorized")
        self.reason = reason
        self.context = context


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: DatabaseSession,
) -> User:
    """
    Validate the bearer token and load the user it names.

    Raises:
        UnauthorizedError: If the token is absent, invalid or expired, or
            the user does not exist or is inactive
    """
    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise UnauthorizedError("missing_credentials")

    try:
        payload = decode_token(credentials.credentials)
    except TokenError as e:
        logger.warning(
            "Authentication failed: Token validation error",
            error=str(e),
            code=e.code,
        )
        raise UnauthorizedError("invalid_token", code=e.code) from e

    user_id_str: Optional[str] = payload.get("sub")
    if user_id_str is None:
        logger.warning("Authentication failed: Token missing 'sub' claim")
        raise UnauthorizedError("missing_subject")

    try:
        user_id = UUID(str(user_id_str))
    except ValueError as e:
        logger.warning(
            "Authentication failed: Invalid user ID format",
            user_id=user_id_str,
        )
        raise UnauthorizedError("invalid_subject") from e

    try:
        user = await db.get(User, user_id)
    except SQLAlchemyError as e:
        logger.error(
            "Database error during user retrieval",
            user_id=str(user_id),
            error=str(e),
        )
        raise

    if user is None:
        logger.warning(
            "Authentication failed: User not found",
            user_id=str(user_id),
        )
        raise UnauthorizedError("unknown_user", user_id=str(user_id))

    if not user.is_active:
        logger.warning(
            "Authentication failed: User account is inactive",
            user_id=str(user.id),
        )
        raise UnauthorizedError("inactive_user", user_id=str(user.id))

    set_user_id(str(user.id))

    logger.debug(
        "User authenticated",
        user_id=str(user.id),
        role=user.role.value,
    )

    return user


async def require_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Dependency for endpoints requiring admin access.

    Raises:
        UnauthorizedError: If the user does not hold the admin role
    """
    if not current_user.is_admin:
        logger.warning(
            "Access denied: Admin role required",
            user_id=str(current_user.id),
            user_role=current_user.role.value,
        )
        raise UnauthorizedError("not_admin", user_id=str(current_user.id))

    return current_user


async def get_order_service(
    db: DatabaseSession,
) -> OrderService:
    """Build an order service bound to the request's session."""
    settings = get_settings()
    return OrderService(
        repository=OrderRepository(db),
        state_machine=get_order_state_machine(),
        store_timeout=settings.order_store_timeout_seconds,
    )


# Type aliases for dependency injection
CurrentAdmin = Annotated[User, Depends(require_admin)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
