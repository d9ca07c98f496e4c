"""Student models."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class StudentStatus(str, Enum):
    """Enrollment status of a student."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    GRADUATED = "graduated"
    TRANSFERRED = "transferred"
    WITHDRAWN = "withdrawn"


class Student(BaseModel):
    """Canonical student record."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    student_id: str
    name: str
    email: str
    grade: str
    section: str
    enrollment_date: date | None = None
    status: StudentStatus = StudentStatus.ACTIVE
    avatar_url: str | None = None
    phone_number: str | None = None
    address: str | None = None
    date_of_birth: date | None = None
    emergency_contact: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
