# src/roaster_api/db/__init__.py
"""Database configuration and utilities."""

from .session import Base, build_engine, build_session_factory, get_db

__all__ = ["Base", "build_engine", "build_session_factory", "get_db"]
