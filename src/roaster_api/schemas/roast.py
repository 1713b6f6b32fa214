"""Schemas for the metered roast endpoint."""

from pydantic import BaseModel, Field, field_validator

from roaster_api.schemas.common import Envelope

NAME_MAX_LENGTH = 64
MESSAGE_MAX_LENGTH = 800


class RoastBody(BaseModel):
    """Roast request. Over-long ``name`` and ``message`` are truncated."""

    requester: str | None = Field(None, description="Calling bot name (required)")
    name: str | None = Field(None, description="Target username")
    message: str | None = Field(None, description="Target's last message")

    @field_validator("name")
    @classmethod
    def truncate_name(cls, v: str | None) -> str:
        return (v or "")[:NAME_MAX_LENGTH]

    @field_validator("message")
    @classmethod
    def truncate_message(cls, v: str | None) -> str:
        return (v or "")[:MESSAGE_MAX_LENGTH]


class RoastResponse(Envelope):
    roast: str
