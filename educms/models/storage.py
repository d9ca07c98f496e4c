"""Object storage value objects."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class StorageBucket(str, Enum):
    """Logical bucket identifiers."""

    AVATARS = "avatars"
    DOCUMENTS = "documents"
    ANNOUNCEMENTS = "announcements"


class UploadOptions(BaseModel):
    """Where and how to store an uploaded file."""

    bucket: str
    folder: str = ""
    file_name: str | None = None
    is_public: bool = False


class StoredObject(BaseModel):
    """Result of a successful upload."""

    path: str
    full_path: str
    public_url: str | None = None

    @property
    def url(self) -> str:
        """Public URL when available, otherwise the bucket-qualified path."""
        return self.public_url or self.full_path


class FileMetadata(BaseModel):
    """Listing entry for a stored object."""

    id: str
    name: str
    size: int = 0
    type: str = "application/octet-stream"
    url: str = ""
    uploaded_at: datetime | None = None
    uploaded_by: str = "Unknown"


class ValidationResult(BaseModel):
    """Outcome of client-side file validation."""

    valid: bool
    error: str | None = None


class BucketStatus(BaseModel):
    """Accessibility of one bucket."""

    exists: bool
    error: str | None = None


class StorageStatus(BaseModel):
    """Accessibility of all configured buckets."""

    buckets: dict[str, BucketStatus] = Field(default_factory=dict)
    all_ready: bool = True


class BucketSetupInstructions(BaseModel):
    """Manual setup guidance for one bucket."""

    bucket: str
    description: str
    is_public: bool
    policies: list[str] = Field(default_factory=list)
