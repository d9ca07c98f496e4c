"""Data gateway: canonical repositories bound to the selected backend."""

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from educms.backends import create_backend
from educms.backends.base import BackendClient, BackendKind
from educms.errors import ConfigurationError, EduCMSError, user_message
from educms.models.announcement import Announcement
from educms.models.document import Document
from educms.normalize.mappings import ALL_MAPS, ANNOUNCEMENT_MAP, DOCUMENT_MAP, STUDENT_MAP
from educms.normalize.repository import EntityRepository, StudentRepository
from educms.settings import Settings

logger = structlog.get_logger()


class BackendSelector(BaseModel):
    """Which backend serves entity CRUD. Fixed for the life of the process."""

    model_config = ConfigDict(frozen=True)

    kind: BackendKind = BackendKind.TABLE

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackendSelector":
        return cls(kind=BackendKind.REST if settings.use_rest_backend else BackendKind.TABLE)


class HealthStatus(BaseModel):
    """Result of a gateway health check."""

    backend: str
    status: str
    details: dict[str, Any] = Field(default_factory=dict)


class DataGateway:
    """Uniform async CRUD for every entity, whichever backend is active.

    The gateway never mixes backends: every repository shares the single
    client passed in, and the client must match the selector.

    Usage:
        async with DataGateway(selector, backend) as gateway:
            student = await gateway.students.get_by_id(student_id)
    """

    def __init__(self, selector: BackendSelector, backend: BackendClient):
        """Bind the repositories to a backend.

        Raises:
            ConfigurationError: If the backend does not match the selector
            MappingError: If a field mapping is not total or not injective
        """
        if backend.kind is not selector.kind:
            raise ConfigurationError(
                f"Backend client '{backend.kind.value}' does not match "
                f"selected backend '{selector.kind.value}'"
            )
        for field_map in ALL_MAPS:
            field_map.validate()

        self.selector = selector
        self.backend = backend
        self.students = StudentRepository("students", STUDENT_MAP, backend)
        self.announcements: EntityRepository[Announcement] = EntityRepository(
            "announcements", ANNOUNCEMENT_MAP, backend
        )
        self.documents: EntityRepository[Document] = EntityRepository(
            "documents", DOCUMENT_MAP, backend
        )
        logger.info("Data gateway ready", backend=self.backend_name)

    @property
    def backend_name(self) -> str:
        return self.selector.kind.value

    async def health_check(self) -> HealthStatus:
        """Probe the active backend; failures are reported, not raised."""
        try:
            details = await self.backend.health_check()
        except EduCMSError as e:
            logger.warning("Backend health check failed", backend=self.backend_name, error=e.message)
            return HealthStatus(
                backend=self.backend_name,
                status="unhealthy",
                details={"error": user_message(e), "kind": e.kind.value},
            )
        return HealthStatus(backend=self.backend_name, status="healthy", details=details)

    async def close(self) -> None:
        await self.backend.close()

    async def __aenter__(self) -> "DataGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def create_gateway(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> DataGateway:
    """Build the gateway for the backend chosen in settings."""
    selector = BackendSelector.from_settings(settings)
    return DataGateway(selector, create_backend(selector.kind, settings, transport=transport))
