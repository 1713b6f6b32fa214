# src/roaster_api/models/__init__.py
"""SQLAlchemy models for the Roaster API."""

from .api_key import ApiKey, ApiKeyOwner

__all__ = ["ApiKey", "ApiKeyOwner"]
