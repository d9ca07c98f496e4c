"""Document library models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DocumentCategory(str, Enum):
    """Document library category."""

    GENERAL = "general"
    ACADEMIC = "academic"
    ADMINISTRATIVE = "administrative"
    POLICY = "policy"
    FORMS = "forms"
    REPORTS = "reports"
    PRESENTATIONS = "presentations"
    IMAGES = "images"
    VIDEOS = "videos"
    AUDIO = "audio"


class Document(BaseModel):
    """Canonical document library record."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    name: str
    description: str | None = None
    file_url: str
    file_size: int | None = Field(default=None, ge=0)
    file_type: str
    category: DocumentCategory = DocumentCategory.GENERAL
    uploaded_by: str | None = None
    is_public: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
