"""Canonical CRUD over the active backend client."""

from collections.abc import AsyncIterator, Mapping
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel

from educms.backends.base import BackendClient, Page
from educms.errors import NotFoundError, ValidationError
from educms.models.student import Student
from educms.normalize.fieldmap import FieldMap

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

EntityInput = Mapping[str, Any] | BaseModel


class EntityRepository(Generic[T]):
    """One entity type bound to one backend.

    Each call translates the argument to the backend's wire shape, makes a
    single backend call and translates the answer back. Errors keep their
    kind; not-found on single-entity reads and writes becomes ``None``.
    """

    def __init__(self, resource: str, field_map: FieldMap[T], backend: BackendClient):
        self.resource = resource
        self.field_map = field_map
        self.backend = backend

    def _normalize(self, record: Mapping[str, Any]) -> T:
        return self.field_map.normalize(record, self.backend.kind)

    async def iter_all(self) -> AsyncIterator[T]:
        """Iterate every entity, following pages when the backend pages."""
        result = await self.backend.get_all(self.resource)
        while True:
            records = result.items if isinstance(result, Page) else result
            for record in records:
                yield self._normalize(record)

            if not isinstance(result, Page) or not result.has_next_page:
                return
            result = await self.backend.get_all(
                self.resource, page_number=result.page_number + 1
            )

    async def get_all(self) -> list[T]:
        return [entity async for entity in self.iter_all()]

    async def get_by_id(self, entity_id: str) -> T | None:
        try:
            record = await self.backend.get_by_id(self.resource, entity_id)
        except NotFoundError:
            logger.info("Entity not found", resource=self.resource, id=entity_id)
            return None
        return self._normalize(record)

    async def create(self, data: EntityInput) -> T:
        """Create an entity.

        Raises:
            ValidationError: If a required field is missing (no call made)
        """
        payload = self.field_map.denormalize(data, self.backend.kind, for_create=True)
        record = await self.backend.create(self.resource, payload)
        return self._normalize(record)

    async def update(self, entity_id: str, changes: EntityInput) -> T | None:
        payload = self.field_map.denormalize(changes, self.backend.kind, for_create=False)
        if not payload:
            raise ValidationError(
                f"No {self.field_map.entity_name} fields to update", {"id": entity_id}
            )
        try:
            record = await self.backend.update(self.resource, entity_id, payload)
        except NotFoundError:
            logger.info("Entity not found", resource=self.resource, id=entity_id)
            return None
        return self._normalize(record)

    async def delete(self, entity_id: str) -> bool:
        """Delete an entity. Returns False if it did not exist."""
        try:
            await self.backend.delete(self.resource, entity_id)
        except NotFoundError:
            return False
        return True

    def ui_dict(self, entity: T) -> dict[str, Any]:
        return self.field_map.ui_dict(entity, self.backend.kind)


class StudentRepository(EntityRepository[Student]):
    async def update_avatar(self, student_id: str, avatar_url: str) -> bool:
        """Set a student's avatar. Returns False if the student is unknown."""
        try:
            await self.backend.update_avatar(student_id, avatar_url)
        except NotFoundError:
            return False
        logger.info("Avatar updated", id=student_id)
        return True
