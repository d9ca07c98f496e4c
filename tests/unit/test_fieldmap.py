"""Unit tests for field maps and codecs."""

from datetime import date, datetime, timezone
from enum import Enum

import pytest

from educms.backends.base import BackendKind
from educms.errors import MappingError, ValidationError
from educms.models.announcement import Announcement, AnnouncementCategory, AnnouncementPriority
from educms.models.attachment import Attachment
from educms.models.document import Document, DocumentCategory
from educms.models.student import Student, StudentStatus
from educms.normalize.codecs import AttachmentListCodec, LookupCodec, PassThroughCodec
from educms.normalize.fieldmap import FieldMap, FieldRule
from educms.normalize.mappings import (
    ALL_MAPS,
    ANNOUNCEMENT_MAP,
    DOCUMENT_MAP,
    STUDENT_MAP,
)

TABLE = BackendKind.TABLE
REST = BackendKind.REST

CREATED = datetime(2025, 9, 1, 8, 30, tzinfo=timezone.utc)


def make_student(**overrides) -> Student:
    data = {
        "id": "st-1",
        "student_id": "S1001",
        "name": "Ada Lovelace",
        "email": "ada@school.test",
        "grade": "10",
        "section": "A",
        "enrollment_date": date(2024, 9, 1),
        "status": StudentStatus.GRADUATED,
        "phone_number": "555-0100",
        "date_of_birth": date(2008, 12, 10),
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    data.update(overrides)
    return Student(**data)


class _Color(str, Enum):
    RED = "red"
    BLUE = "blue"


class TestLookupCodec:
    """Tests for code table codecs."""

    def test_round_trip(self):
        """Test encoding and decoding through the table."""
        codec = LookupCodec({_Color.RED: 1, _Color.BLUE: 2}, _Color)
        assert codec.encode(_Color.BLUE) == 2
        assert codec.decode(2) is _Color.BLUE

    def test_encode_accepts_enum_value(self):
        """Test plain strings are coerced to the enum first."""
        codec = LookupCodec({_Color.RED: 1, _Color.BLUE: 2}, _Color)
        assert codec.encode("red") == 1

    def test_not_total(self):
        """Test a table missing a member is rejected."""
        with pytest.raises(MappingError, match="missing blue"):
            LookupCodec({_Color.RED: 1}, _Color)

    def test_not_injective(self):
        """Test two members sharing a code are rejected."""
        with pytest.raises(MappingError, match="not injective"):
            LookupCodec({_Color.RED: 1, _Color.BLUE: 1}, _Color)

    def test_unknown_code(self):
        """Test decoding an unknown code raises a validation error."""
        codec = LookupCodec({_Color.RED: 1, _Color.BLUE: 2}, _Color)
        with pytest.raises(ValidationError):
            codec.decode(9)

    def test_decode_extra(self):
        """Test extra wire codes decode without being encodable."""
        codec = LookupCodec({True: 1, False: 2}, decode_extra={3: False})
        assert codec.decode(3) is False
        assert codec.encode(False) == 2

    def test_entity_code_tables(self):
        """Test the entity code tables use the documented codes."""
        rule = next(r for r in ANNOUNCEMENT_MAP.rules if r.canonical == "category")
        assert rule.table_codec.encode(AnnouncementCategory.EMERGENCY) == "urgent"
        assert rule.rest_codec.encode(AnnouncementCategory.EVENT) == 4
        rule = next(r for r in ANNOUNCEMENT_MAP.rules if r.canonical == "priority")
        assert rule.table_codec.encode(AnnouncementPriority.NORMAL) == "medium"
        assert rule.rest_codec.decode(4) is AnnouncementPriority.CRITICAL


class TestPassThroughCodecs:
    """Tests for value-preserving codecs."""

    def test_dates_become_iso_strings(self):
        """Test dates and datetimes are sent as ISO strings."""
        codec = PassThroughCodec()
        assert codec.encode(date(2024, 9, 1)) == "2024-09-01"
        assert codec.encode(CREATED) == "2025-09-01T08:30:00+00:00"
        assert codec.encode(StudentStatus.ACTIVE) == "active"

    def test_attachment_keys_renamed(self):
        """Test attachment descriptor keys are renamed both ways."""
        codec = AttachmentListCodec({"name": "fileName", "url": "fileUrl"})
        attachment = Attachment(id="a1", name="map.pdf", url="u", size=3, type="application/pdf")
        wire = codec.encode([attachment])
        assert wire == [
            {"id": "a1", "fileName": "map.pdf", "fileUrl": "u", "size": 3, "type": "application/pdf"}
        ]
        assert codec.decode(wire)[0]["name"] == "map.pdf"
        assert codec.decode(None) == []


class TestFieldMapValidation:
    """Tests for totality and uniqueness checks."""

    def test_entity_maps_are_valid(self):
        """Test every shipped map passes validation."""
        for field_map in ALL_MAPS:
            field_map.validate()

    def test_missing_field(self):
        """Test a model field without a rule is reported."""
        rules = [r for r in STUDENT_MAP.rules if r.canonical != "notes"]
        with pytest.raises(MappingError, match="notes"):
            FieldMap(Student, rules).validate()

    def test_unknown_field(self):
        """Test a rule naming no model field is reported."""
        rules = [*STUDENT_MAP.rules, FieldRule("nickname", table="nickname", rest="nickname")]
        with pytest.raises(MappingError, match="nickname"):
            FieldMap(Student, rules).validate()

    def test_duplicate_wire_name(self):
        """Test two fields sharing a wire name are reported."""
        rules = [
            FieldRule("notes", table="address", rest="notes") if r.canonical == "notes" else r
            for r in STUDENT_MAP.rules
        ]
        with pytest.raises(MappingError, match="duplicate table names: address"):
            FieldMap(Student, rules).validate()

    def test_alias_collision(self):
        """Test an alias shadowing another field is reported."""
        rules = [
            FieldRule("notes", table="notes", rest="notes", alias="address")
            if r.canonical == "notes"
            else r
            for r in STUDENT_MAP.rules
        ]
        with pytest.raises(MappingError, match="alias 'address'"):
            FieldMap(Student, rules).validate()


class TestDenormalize:
    """Tests for canonical to wire translation."""

    def test_table_names(self):
        """Test the table API gets snake_case columns and string enums."""
        wire = STUDENT_MAP.denormalize(make_student(), TABLE, for_create=True)
        assert wire["student_id"] == "S1001"
        assert wire["phone"] == "555-0100"
        assert wire["status"] == "graduated"
        assert wire["enrollment_date"] == "2024-09-01"

    def test_rest_names(self):
        """Test the REST API gets camelCase fields and integer codes."""
        wire = STUDENT_MAP.denormalize(make_student(), REST, for_create=True)
        assert wire["studentId"] == "S1001"
        assert wire["phoneNumber"] == "555-0100"
        assert wire["status"] == 4
        assert "student_id" not in wire

    def test_read_only_fields_skipped(self):
        """Test id and timestamps are never sent unless asked for."""
        wire = STUDENT_MAP.denormalize(make_student(), REST, for_create=True)
        assert "id" not in wire
        assert "createdAt" not in wire

    def test_canonical_name_preferred_over_alias(self):
        """Test the canonical name wins when both spellings are set."""
        wire = STUDENT_MAP.denormalize(
            {"student_id": "NEW", "studentId": "OLD"}, TABLE, for_create=False
        )
        assert wire == {"student_id": "NEW"}

    def test_alias_used_when_canonical_empty(self):
        """Test an empty canonical value falls back to the alias."""
        wire = STUDENT_MAP.denormalize(
            {"phone_number": "", "phoneNumber": "555-0199"}, REST, for_create=False
        )
        assert wire == {"phoneNumber": "555-0199"}

    def test_native_names_accepted(self):
        """Test backend spellings are accepted as input too."""
        wire = STUDENT_MAP.denormalize({"phone": "555-0142"}, REST, for_create=False)
        assert wire == {"phoneNumber": "555-0142"}

    def test_absent_fields_omitted(self):
        """Test absent values are left out rather than sent as null."""
        wire = STUDENT_MAP.denormalize(
            {"notes": None, "address": "", "name": "Grace"}, TABLE, for_create=False
        )
        assert wire == {"name": "Grace"}

    def test_missing_required_on_create(self):
        """Test a missing required field fails before any call."""
        with pytest.raises(ValidationError) as exc_info:
            STUDENT_MAP.denormalize(
                {"name": "Grace", "email": "g@school.test"}, TABLE, for_create=True
            )
        assert exc_info.value.details["fields"] == ["student_id", "grade", "section"]

    def test_required_per_backend(self):
        """Test file size is required by the REST API only."""
        data = {
            "name": "Handbook",
            "file_url": "documents/h.pdf",
            "file_type": "application/pdf",
            "uploaded_by": "u-1",
        }
        assert "file_size" not in DOCUMENT_MAP.denormalize(data, TABLE, for_create=True)
        with pytest.raises(ValidationError, match="file_size"):
            DOCUMENT_MAP.denormalize(data, REST, for_create=True)

    def test_wrong_type(self):
        """Test a value that does not fit the field is rejected."""
        with pytest.raises(ValidationError, match="status"):
            STUDENT_MAP.denormalize({"status": "expelled"}, TABLE, for_create=False)

    def test_document_access_level(self):
        """Test the public flag becomes a REST access level."""
        wire = DOCUMENT_MAP.denormalize({"is_public": True}, REST, for_create=False)
        assert wire == {"accessLevel": 1}
        wire = DOCUMENT_MAP.denormalize({"is_public": False}, REST, for_create=False)
        assert wire == {"accessLevel": 2}


class TestNormalize:
    """Tests for wire to canonical translation."""

    @pytest.mark.parametrize("backend", [TABLE, REST])
    def test_round_trip_student(self, backend):
        """Test normalize(denormalize(entity)) returns the entity."""
        student = make_student()
        wire = STUDENT_MAP.denormalize(student, backend, for_create=True, include_read_only=True)
        assert STUDENT_MAP.normalize(wire, backend) == student

    @pytest.mark.parametrize("backend", [TABLE, REST])
    def test_round_trip_announcement(self, backend):
        """Test announcements with attachments survive a round trip."""
        announcement = Announcement(
            id="an-1",
            title="Sports day",
            content="Friday",
            category=AnnouncementCategory.EMERGENCY,
            priority=AnnouncementPriority.HIGH,
            author_id="u-1",
            is_published=True,
            attachments=[
                Attachment(id="a1", name="map.pdf", url="u1", size=10, type="application/pdf")
            ],
            created_at=CREATED,
        )
        wire = ANNOUNCEMENT_MAP.denormalize(
            announcement, backend, for_create=True, include_read_only=True
        )
        assert ANNOUNCEMENT_MAP.normalize(wire, backend) == announcement

    def test_rest_document(self):
        """Test a REST document record normalizes to the canonical shape."""
        document = DOCUMENT_MAP.normalize(
            {
                "id": "d-1",
                "name": "Handbook",
                "fileName": "handbook.pdf",
                "fileUrl": "documents/handbook.pdf",
                "contentType": "application/pdf",
                "fileSize": 2048,
                "category": 4,
                "accessLevel": 3,
                "uploadedById": "u-1",
            },
            REST,
        )
        assert document == Document(
            id="d-1",
            name="Handbook",
            file_url="documents/handbook.pdf",
            file_type="application/pdf",
            file_size=2048,
            category=DocumentCategory.POLICY,
            is_public=False,
            uploaded_by="u-1",
        )

    def test_null_fields_use_defaults(self):
        """Test null wire values fall back to model defaults."""
        announcement = ANNOUNCEMENT_MAP.normalize(
            {"id": "an-1", "title": "T", "content": "C", "attachments": None, "priority": None},
            TABLE,
        )
        assert announcement.attachments == []
        assert announcement.priority is AnnouncementPriority.NORMAL

    def test_invalid_record(self):
        """Test a record missing required model fields is rejected."""
        with pytest.raises(ValidationError, match="Invalid Student record"):
            STUDENT_MAP.normalize({"id": "st-1", "name": "Ada"}, TABLE)


class TestUiDict:
    """Tests for the UI rendering dictionary."""

    def test_carries_all_spellings(self):
        """Test each field appears under canonical, alias and native names."""
        result = STUDENT_MAP.ui_dict(make_student(), TABLE)
        assert result["phone_number"] == "555-0100"
        assert result["phoneNumber"] == "555-0100"
        assert result["phone"] == "555-0100"
        assert result["studentId"] == result["student_id"] == "S1001"
        assert result["status"] == "graduated"

    def test_rest_native_names(self):
        """Test the active backend's native names are included."""
        result = DOCUMENT_MAP.ui_dict(
            Document(name="H", file_url="u", file_type="application/pdf"), REST
        )
        assert result["contentType"] == result["fileType"] == "application/pdf"
        assert result["accessLevel"] is False
