"""Field mappings and code tables for every entity."""

from educms.backends.base import BackendKind
from educms.models.announcement import (
    Announcement,
    AnnouncementCategory,
    AnnouncementPriority,
)
from educms.models.document import Document, DocumentCategory
from educms.models.student import Student, StudentStatus
from educms.normalize.codecs import AttachmentListCodec, LookupCodec
from educms.normalize.fieldmap import FieldMap, FieldRule

BOTH = (BackendKind.TABLE, BackendKind.REST)

# -- code tables ------------------------------------------------------------
# The table API stores symbolic strings, the REST API small integers.

STUDENT_STATUS_TABLE = LookupCodec({s: s.value for s in StudentStatus}, StudentStatus)
STUDENT_STATUS_REST = LookupCodec(
    {
        StudentStatus.ACTIVE: 1,
        StudentStatus.INACTIVE: 2,
        StudentStatus.SUSPENDED: 3,
        StudentStatus.GRADUATED: 4,
        StudentStatus.TRANSFERRED: 5,
        StudentStatus.WITHDRAWN: 6,
    },
    StudentStatus,
)

ANNOUNCEMENT_CATEGORY_TABLE = LookupCodec(
    {
        **{c: c.value for c in AnnouncementCategory},
        AnnouncementCategory.EMERGENCY: "urgent",
    },
    AnnouncementCategory,
)
ANNOUNCEMENT_CATEGORY_REST = LookupCodec(
    {
        AnnouncementCategory.GENERAL: 1,
        AnnouncementCategory.ACADEMIC: 2,
        AnnouncementCategory.ADMINISTRATIVE: 3,
        AnnouncementCategory.EVENT: 4,
        AnnouncementCategory.EMERGENCY: 5,
        AnnouncementCategory.MAINTENANCE: 6,
        AnnouncementCategory.POLICY: 7,
    },
    AnnouncementCategory,
)

ANNOUNCEMENT_PRIORITY_TABLE = LookupCodec(
    {
        **{p: p.value for p in AnnouncementPriority},
        AnnouncementPriority.NORMAL: "medium",
    },
    AnnouncementPriority,
)
ANNOUNCEMENT_PRIORITY_REST = LookupCodec(
    {
        AnnouncementPriority.LOW: 1,
        AnnouncementPriority.NORMAL: 2,
        AnnouncementPriority.HIGH: 3,
        AnnouncementPriority.CRITICAL: 4,
    },
    AnnouncementPriority,
)

DOCUMENT_CATEGORY_TABLE = LookupCodec({c: c.value for c in DocumentCategory}, DocumentCategory)
DOCUMENT_CATEGORY_REST = LookupCodec(
    {category: code for code, category in enumerate(DocumentCategory, start=1)},
    DocumentCategory,
)

# REST access levels: 1 public, 2 internal, 3 restricted, 4 confidential
DOCUMENT_ACCESS_REST = LookupCodec({True: 1, False: 2}, decode_extra={3: False, 4: False})

ATTACHMENTS_TABLE = AttachmentListCodec()
ATTACHMENTS_REST = AttachmentListCodec(
    {"name": "fileName", "url": "fileUrl", "size": "fileSize", "type": "contentType"}
)


def _read_only(canonical: str, rest: str) -> FieldRule:
    return FieldRule(canonical, table=canonical, rest=rest, writable=False)


# -- entity maps ------------------------------------------------------------

STUDENT_MAP = FieldMap(
    Student,
    [
        _read_only("id", "id"),
        FieldRule("student_id", table="student_id", rest="studentId", required=BOTH),
        FieldRule("name", table="name", rest="name", required=BOTH),
        FieldRule("email", table="email", rest="email", required=BOTH),
        FieldRule("grade", table="grade", rest="grade", required=BOTH),
        FieldRule("section", table="section", rest="section", required=BOTH),
        FieldRule("enrollment_date", table="enrollment_date", rest="enrollmentDate"),
        FieldRule(
            "status",
            table="status",
            rest="status",
            table_codec=STUDENT_STATUS_TABLE,
            rest_codec=STUDENT_STATUS_REST,
        ),
        FieldRule("avatar_url", table="avatar_url", rest="avatarUrl"),
        FieldRule("phone_number", table="phone", rest="phoneNumber"),
        FieldRule("address", table="address", rest="address"),
        FieldRule("date_of_birth", table="date_of_birth", rest="dateOfBirth"),
        FieldRule("emergency_contact", table="emergency_contact", rest="emergencyContact"),
        FieldRule("notes", table="notes", rest="notes"),
        _read_only("created_at", "createdAt"),
        _read_only("updated_at", "updatedAt"),
    ],
)

ANNOUNCEMENT_MAP = FieldMap(
    Announcement,
    [
        _read_only("id", "id"),
        FieldRule("title", table="title", rest="title", required=BOTH),
        FieldRule("content", table="content", rest="content", required=BOTH),
        FieldRule(
            "category",
            table="category",
            rest="category",
            table_codec=ANNOUNCEMENT_CATEGORY_TABLE,
            rest_codec=ANNOUNCEMENT_CATEGORY_REST,
        ),
        FieldRule(
            "priority",
            table="priority",
            rest="priority",
            table_codec=ANNOUNCEMENT_PRIORITY_TABLE,
            rest_codec=ANNOUNCEMENT_PRIORITY_REST,
        ),
        FieldRule("author_id", table="author_id", rest="authorId", required=BOTH),
        FieldRule("is_published", table="is_published", rest="isPublished"),
        FieldRule(
            "attachments",
            table="attachments",
            rest="attachments",
            table_codec=ATTACHMENTS_TABLE,
            rest_codec=ATTACHMENTS_REST,
        ),
        _read_only("created_at", "createdAt"),
        _read_only("updated_at", "updatedAt"),
    ],
)

DOCUMENT_MAP = FieldMap(
    Document,
    [
        _read_only("id", "id"),
        FieldRule("name", table="name", rest="name", required=BOTH),
        FieldRule("description", table="description", rest="description"),
        FieldRule("file_url", table="file_url", rest="fileUrl", required=BOTH),
        FieldRule(
            "file_size", table="file_size", rest="fileSize", required=(BackendKind.REST,)
        ),
        FieldRule(
            "file_type",
            table="file_type",
            rest="contentType",
            alias="fileType",
            required=BOTH,
        ),
        FieldRule(
            "category",
            table="category",
            rest="category",
            table_codec=DOCUMENT_CATEGORY_TABLE,
            rest_codec=DOCUMENT_CATEGORY_REST,
        ),
        FieldRule(
            "uploaded_by",
            table="uploaded_by",
            rest="uploadedById",
            required=(BackendKind.TABLE,),
        ),
        FieldRule(
            "is_public",
            table="is_public",
            rest="accessLevel",
            rest_codec=DOCUMENT_ACCESS_REST,
        ),
        _read_only("created_at", "createdAt"),
        _read_only("updated_at", "updatedAt"),
    ],
)

ALL_MAPS = (STUDENT_MAP, ANNOUNCEMENT_MAP, DOCUMENT_MAP)
