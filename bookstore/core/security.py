"""
JWT access token handling.

Tokens are issued by the storefront's authentication service; this module
verifies them and resolves their claims. ``create_access_token`` mints
tokens with the same shape for local tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from bookstore.core.config import get_settings
from bookstore.core.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context: Any):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    """Exception raised for token-related errors."""

    pass


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token with expiration.

    Args:
        data: Claims to encode; ``sub`` holds the user ID
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string

    Example:
        >>> token = create_access_token({"sub": str(user.id), "role": "admin"})
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        if expires_delta is not None
        else timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )

    to_encode = data.copy()
    to_encode.update({"exp": expire, "iat": now, "type": ACCESS_TOKEN_TYPE})

    return jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string to decode

    Returns:
        Dictionary of decoded token claims

    Raises:
        TokenError: If token is empty, invalid, expired, or not an access token
    """
    if not token:
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError as e:
        logger.warning("Token has expired")
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning(
            "Invalid token",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TokenError(
            "Invalid token",
            code="TOKEN_INVALID",
            original_error=str(e),
        ) from e

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        logger.warning(
            "Token type mismatch",
            expected=ACCESS_TOKEN_TYPE,
            actual=payload.get("type"),
            subject=payload.get("sub"),
        )
        raise TokenError("Not an access token", code="TOKEN_TYPE_MISMATCH")

    return payload
