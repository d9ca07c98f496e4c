"""Attachment descriptor model."""

from pydantic import BaseModel, Field


class Attachment(BaseModel):
    """A stored file attached to an entity."""

    id: str
    name: str
    url: str
    size: int = Field(ge=0)
    type: str
