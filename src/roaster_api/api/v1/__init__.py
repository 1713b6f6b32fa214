# src/roaster_api/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import auth_router, onchain_router, roast_router

__all__ = [
    "auth_router",
    "onchain_router",
    "roast_router",
]
