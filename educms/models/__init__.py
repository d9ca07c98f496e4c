"""Pydantic models for EduCMS entities, storage and uploads."""

from educms.models.announcement import (
    Announcement,
    AnnouncementCategory,
    AnnouncementPriority,
)
from educms.models.attachment import Attachment
from educms.models.document import Document, DocumentCategory
from educms.models.storage import (
    BucketSetupInstructions,
    BucketStatus,
    FileMetadata,
    StorageBucket,
    StorageStatus,
    StoredObject,
    UploadOptions,
    ValidationResult,
)
from educms.models.student import Student, StudentStatus
from educms.models.upload import (
    UploadState,
    UploadStateError,
    UploadTask,
    UploadTaskSnapshot,
)

__all__ = [
    # Entities
    "Announcement",
    "AnnouncementCategory",
    "AnnouncementPriority",
    "Attachment",
    "Document",
    "DocumentCategory",
    "Student",
    "StudentStatus",
    # Storage
    "BucketSetupInstructions",
    "BucketStatus",
    "FileMetadata",
    "StorageBucket",
    "StorageStatus",
    "StoredObject",
    "UploadOptions",
    "ValidationResult",
    # Uploads
    "UploadState",
    "UploadStateError",
    "UploadTask",
    "UploadTaskSnapshot",
]
