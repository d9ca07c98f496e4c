"""Backend client interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

WireRecord = dict[str, Any]


class BackendKind(str, Enum):
    """Which backend implementation serves entity CRUD."""

    TABLE = "table"
    REST = "rest"


class Page(BaseModel):
    """One page of a paginated bulk read."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[WireRecord] = Field(default_factory=list)
    total_count: int = Field(default=0, alias="totalCount")
    page_number: int = Field(default=1, alias="pageNumber")
    page_size: int = Field(default=0, alias="pageSize")
    total_pages: int = Field(default=0, alias="totalPages")
    has_previous_page: bool = Field(default=False, alias="hasPreviousPage")
    has_next_page: bool = Field(default=False, alias="hasNextPage")


class BackendClient(ABC):
    """Abstract entity CRUD backend.

    Implementations speak their own wire shape: field names and enum codes
    are native to the backend. Translation to canonical entities happens in
    the normalization layer.

    Every operation raises a classified ``EduCMSError``:
    ``NotFoundError`` when the entity is absent, ``ValidationError`` when
    input is rejected, ``TransportError`` on network or server failure.
    """

    kind: BackendKind

    @abstractmethod
    async def get_all(self, resource: str) -> list[WireRecord] | Page:
        """Read every record of a resource.

        Returns a flat list, or the first ``Page`` for paginated backends.
        """

    @abstractmethod
    async def get_by_id(self, resource: str, entity_id: str) -> WireRecord:
        """Read one record.

        Raises:
            NotFoundError: If no record has this id
        """

    @abstractmethod
    async def create(self, resource: str, payload: WireRecord) -> WireRecord:
        """Create a record and return it as stored."""

    @abstractmethod
    async def update(
        self, resource: str, entity_id: str, payload: WireRecord
    ) -> WireRecord:
        """Apply a partial update and return the stored record.

        Raises:
            NotFoundError: If no record has this id
        """

    @abstractmethod
    async def delete(self, resource: str, entity_id: str) -> None:
        """Delete a record.

        Raises:
            NotFoundError: If no record has this id
        """

    @abstractmethod
    async def update_avatar(self, student_id: str, avatar_url: str) -> None:
        """Set a student's avatar URL.

        Raises:
            NotFoundError: If the student doesn't exist
        """

    @abstractmethod
    async def health_check(self) -> dict[str, Any]:
        """Return backend health details; raises if unreachable."""

    async def close(self) -> None:
        """Release network resources."""
