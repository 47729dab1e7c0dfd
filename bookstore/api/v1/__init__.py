"""
API v1 package initialization.

This module initializes the v1 API package for the bookstore admin backend.
"""

from bookstore.api.v1.admin_orders import router as admin_orders_router

__all__ = ["admin_orders_router"]
