"""EduCMS backend gateway.

Canonical CRUD for students, announcements and documents over either the
hosted table API or the REST API, plus object storage and upload
coordination for forms with attached files.
"""

__version__ = "0.1.0"
