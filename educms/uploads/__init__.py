"""Upload coordination for forms with attached files."""

from .coordinator import (
    SubmissionResult,
    UploadCoordinator,
    merge_attachments,
    merge_avatar,
    merge_document_file,
)

__all__ = [
    "SubmissionResult",
    "UploadCoordinator",
    "merge_attachments",
    "merge_avatar",
    "merge_document_file",
]
