"""Shared Pydantic schemas for the response envelope."""
from __future__ import annotations

from pydantic import BaseModel, Field


class Envelope(BaseModel):
    """Every response carries ``success``; failures add ``error`` and ``hint``."""

    success: bool = Field(True, description="False for every failure response")


class ErrorResponse(Envelope):
    """Failure body rendered by the exception handlers."""

    success: bool = False
    error: str = Field(..., description="Short machine-stable error string")
    hint: str | None = Field(None, description="Optional guidance for the caller")
