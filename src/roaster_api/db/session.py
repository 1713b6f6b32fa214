"""Database session configuration."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import roaster_api.models  # noqa: E402,F401


def build_engine(
    url: str,
    *,
    echo: bool = False,
    pool_size: int = 10,
    statement_timeout_ms: int | None = None,
    connect_timeout_seconds: int | None = None,
    pool_timeout: float = 30.0,
) -> Engine:
    """Create an engine with per-dialect connection arguments.

    PostgreSQL connections get a server-side ``statement_timeout`` and a
    libpq ``connect_timeout``; checkouts wait at most `pool_timeout` seconds
    for a free connection. An unreachable server then fails fast with
    ``OperationalError`` instead of holding the request open.
    """
    if url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)

    connect_args: dict[str, Any] = {}
    if statement_timeout_ms and url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={int(statement_timeout_ms)}"
    if connect_timeout_seconds and url.startswith("postgresql"):
        connect_args["connect_timeout"] = int(connect_timeout_seconds)
    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=pool_size,
        pool_timeout=pool_timeout,
        connect_args=connect_args,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return the session factory used for requests and background tasks."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a database session from the application's service context."""
    db = request.app.state.context.session_factory()
    try:
        yield db
    finally:
        db.close()


def create_tables(engine: Engine) -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def drop_tables(engine: Engine) -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)
