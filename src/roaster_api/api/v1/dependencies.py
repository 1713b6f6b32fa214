"""Shared API dependencies for the service context and request metadata."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from roaster_api.core.context import ServiceContext
from roaster_api.db.session import get_db

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_context(request: Request) -> ServiceContext:
    """Return the service context opened by the application lifespan."""
    context: ServiceContext = request.app.state.context
    return context


ContextDep = Annotated[ServiceContext, Depends(get_context)]


def get_client_ip(request: Request) -> str:
    """Return the caller's address as seen after proxy header processing."""
    if request.client is None:
        return "unknown"
    return request.client.host


ClientIpDep = Annotated[str, Depends(get_client_ip)]
