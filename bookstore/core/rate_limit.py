"""Request rate limiting keyed by client address."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from bookstore.core.config import get_settings

limiter = Limiter(key_func=get_remote_address)


def status_update_limit() -> str:
    """Rate limit applied to order status changes."""
    return get_settings().rate_limit
