# src/roaster_api/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .onchain import router as onchain_router
from .roast import router as roast_router

__all__ = [
    "auth_router",
    "onchain_router",
    "roast_router",
]
