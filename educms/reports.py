"""CSV reports and dashboard statistics."""

import csv
import io
from datetime import date

import structlog
from pydantic import BaseModel

from educms.errors import ValidationError
from educms.models.announcement import Announcement
from educms.models.document import Document
from educms.models.student import Student, StudentStatus
from educms.normalize.gateway import DataGateway
from educms.storage.validation import format_file_size

logger = structlog.get_logger()

REPORT_FILENAMES = {
    "students": "students-report.csv",
    "announcements": "announcements-report.csv",
    "documents": "documents-report.csv",
    "summary": "system-summary-report.csv",
}


class DashboardStats(BaseModel):
    """Entity counts shown on the dashboard."""

    total_students: int = 0
    active_students: int = 0
    total_announcements: int = 0
    published_announcements: int = 0
    total_documents: int = 0
    public_documents: int = 0


async def collect_stats(gateway: DataGateway) -> DashboardStats:
    """Count entities through the gateway."""
    stats = DashboardStats()
    async for student in gateway.students.iter_all():
        stats.total_students += 1
        if student.status is StudentStatus.ACTIVE:
            stats.active_students += 1
    async for announcement in gateway.announcements.iter_all():
        stats.total_announcements += 1
        if announcement.is_published:
            stats.published_announcements += 1
    async for document in gateway.documents.iter_all():
        stats.total_documents += 1
        if document.is_public:
            stats.public_documents += 1
    return stats


def _format_date(value: date | None) -> str:
    return value.isoformat() if value else ""


def _write(header: list[str], rows: list[list[str]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return output.getvalue()


def students_csv(students: list[Student]) -> str:
    return _write(
        ["Student ID", "Name", "Email", "Grade", "Section", "Enrollment Date", "Status"],
        [
            [
                s.student_id,
                s.name,
                s.email,
                s.grade,
                s.section,
                _format_date(s.enrollment_date),
                s.status.value,
            ]
            for s in students
        ],
    )


def announcements_csv(announcements: list[Announcement]) -> str:
    return _write(
        [
            "Title",
            "Author",
            "Category",
            "Priority",
            "Published",
            "Created Date",
            "Content Length",
            "Attachments",
        ],
        [
            [
                a.title,
                a.author_id or "",
                a.category.value,
                a.priority.value,
                "Yes" if a.is_published else "No",
                _format_date(a.created_at.date() if a.created_at else None),
                str(len(a.content)),
                str(len(a.attachments)),
            ]
            for a in announcements
        ],
    )


def documents_csv(documents: list[Document]) -> str:
    return _write(
        ["Name", "Type", "Size", "Category", "Uploaded By", "Upload Date"],
        [
            [
                d.name,
                d.file_type,
                format_file_size(d.file_size) if d.file_size is not None else "",
                d.category.value,
                d.uploaded_by or "",
                _format_date(d.created_at.date() if d.created_at else None),
            ]
            for d in documents
        ],
    )


def summary_csv(stats: DashboardStats, generated: date | None = None) -> str:
    return _write(
        ["Metric", "Value"],
        [
            ["Total Students", str(stats.total_students)],
            ["Active Students", str(stats.active_students)],
            ["Total Announcements", str(stats.total_announcements)],
            ["Published Announcements", str(stats.published_announcements)],
            ["Total Documents", str(stats.total_documents)],
            ["Public Documents", str(stats.public_documents)],
            ["Report Generated", (generated or date.today()).isoformat()],
        ],
    )


async def build_report(gateway: DataGateway, report_type: str) -> tuple[str, str]:
    """Build one report.

    Returns:
        Tuple of (suggested filename, CSV text)

    Raises:
        ValidationError: If the report type is unknown
    """
    if report_type not in REPORT_FILENAMES:
        raise ValidationError(
            f"Unknown report type: {report_type}. "
            f"Choose one of: {', '.join(REPORT_FILENAMES)}"
        )

    if report_type == "students":
        content = students_csv(await gateway.students.get_all())
    elif report_type == "announcements":
        content = announcements_csv(await gateway.announcements.get_all())
    elif report_type == "documents":
        content = documents_csv(await gateway.documents.get_all())
    else:
        content = summary_csv(await collect_stats(gateway))

    logger.info("Report built", report=report_type, backend=gateway.backend_name)
    return REPORT_FILENAMES[report_type], content
