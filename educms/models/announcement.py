"""Announcement models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from educms.models.attachment import Attachment


class AnnouncementCategory(str, Enum):
    """Announcement category."""

    GENERAL = "general"
    ACADEMIC = "academic"
    ADMINISTRATIVE = "administrative"
    EVENT = "event"
    EMERGENCY = "emergency"
    MAINTENANCE = "maintenance"
    POLICY = "policy"


class AnnouncementPriority(str, Enum):
    """Announcement priority."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class Announcement(BaseModel):
    """Canonical announcement record."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    title: str
    content: str
    category: AnnouncementCategory = AnnouncementCategory.GENERAL
    priority: AnnouncementPriority = AnnouncementPriority.NORMAL
    author_id: str | None = None
    is_published: bool = False
    attachments: list[Attachment] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
