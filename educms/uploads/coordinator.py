"""Upload coordinator.

Orchestrates one form submission with attached files:

1. Validate every queued file against the bucket rules (no I/O).
2. Upload files one at a time, in the order they were added, updating each
   task's progress. The first failure stops the sequence.
3. When every file is done, merge the attachment descriptors into the
   entity payload and make exactly one create or update call.

If that call fails, files already uploaded are either deleted
(``rollback_on_failure``) or reported through ``OrphanedUploadsError`` for
manual cleanup.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel

from educms.errors import (
    EduCMSError,
    NotFoundError,
    OrphanedUploadsError,
    UploadCancelledError,
    ValidationError,
)
from educms.models.attachment import Attachment
from educms.models.storage import UploadOptions
from educms.models.upload import (
    UploadState,
    UploadStateError,
    UploadTask,
    UploadTaskSnapshot,
)
from educms.normalize.repository import EntityRepository
from educms.storage.base import StorageAdapter
from educms.storage.source import SourceFile

logger = structlog.get_logger()

MergeFn = Callable[[dict[str, Any], list[Attachment]], dict[str, Any]]


def merge_attachments(payload: dict[str, Any], attachments: list[Attachment]) -> dict[str, Any]:
    """Append attachment descriptors to the payload's ``attachments`` list."""
    existing = list(payload.get("attachments") or [])
    payload["attachments"] = existing + [a.model_dump() for a in attachments]
    return payload


def merge_document_file(payload: dict[str, Any], attachments: list[Attachment]) -> dict[str, Any]:
    """Fill a document's file fields from its single uploaded file."""
    if len(attachments) != 1:
        raise ValidationError("A document needs exactly one file")
    file = attachments[0]
    if not payload.get("name"):
        payload["name"] = file.name
    payload["file_url"] = file.url
    payload["file_size"] = file.size
    payload["file_type"] = file.type
    return payload


def merge_avatar(payload: dict[str, Any], attachments: list[Attachment]) -> dict[str, Any]:
    """Point a student's avatar at the uploaded image."""
    if attachments:
        payload["avatar_url"] = attachments[-1].url
    return payload


@dataclass
class SubmissionResult:
    """Outcome of a submission that did not raise.

    ``status`` is ``saved`` when the entity was written, ``upload_failed``
    or ``cancelled`` when the upload sequence stopped before any entity
    call was made.
    """

    status: str
    entity: BaseModel | None = None
    attachments: list[Attachment] = field(default_factory=list)
    failed_task_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "saved"


class UploadCoordinator:
    """Owns the upload tasks of one form session.

    Not shared between sessions; discard it when the form closes.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        *,
        bucket: str,
        folder: str = "",
        is_public: bool = False,
        max_files: int | None = None,
        rollback_on_failure: bool = False,
        on_progress: Callable[[UploadTask], None] | None = None,
    ):
        """Create a coordinator for one bucket.

        Args:
            storage: Storage adapter that receives the files
            bucket: Target bucket
            folder: Folder inside the bucket
            is_public: Return public URLs for uploaded files
            max_files: Batch limit (defaults to the storage config)
            rollback_on_failure: Delete uploaded files if the entity write fails
            on_progress: Called with the task whenever its progress changes
        """
        self.storage = storage
        self.options = UploadOptions(bucket=bucket, folder=folder, is_public=is_public)
        self.max_files = max_files or storage.config.upload.max_files
        self.rollback_on_failure = rollback_on_failure
        self.on_progress = on_progress

        self._tasks: list[UploadTask] = []
        self._attachments: dict[str, Attachment] = {}
        self._cancel_event = asyncio.Event()
        self._busy = False

    @property
    def tasks(self) -> list[UploadTask]:
        return list(self._tasks)

    @property
    def is_busy(self) -> bool:
        return self._busy

    def snapshots(self) -> list[UploadTaskSnapshot]:
        return [task.snapshot() for task in self._tasks]

    def add_files(self, files: Iterable[SourceFile]) -> list[UploadTask]:
        """Queue files for upload.

        Raises:
            ValidationError: If the batch would exceed ``max_files``
            UploadStateError: If a submission is in progress
        """
        self._ensure_idle("add files")
        files = list(files)
        if len(self._tasks) + len(files) > self.max_files:
            raise ValidationError(
                f"You can attach at most {self.max_files} files",
                {"max_files": self.max_files},
            )
        added = [UploadTask(file) for file in files]
        self._tasks.extend(added)
        logger.debug("Files queued", bucket=self.options.bucket, count=len(added))
        return added

    def remove_file(self, task_id: str) -> bool:
        """Drop a task. Returns False if no task has this id.

        Raises:
            UploadStateError: If a submission is in progress or the task
                is uploading
        """
        self._ensure_idle("remove files")
        for task in self._tasks:
            if task.id != task_id:
                continue
            if task.state is UploadState.UPLOADING:
                raise UploadStateError(f"Cannot remove {task.source.name} while it uploads")
            self._tasks.remove(task)
            self._attachments.pop(task.id, None)
            return True
        return False

    def validate_pending(self) -> dict[str, str]:
        """Check queued files against the bucket rules.

        Returns:
            Error message per failing task id (empty when all pass)
        """
        errors = {}
        for task in self._tasks:
            if task.state is not UploadState.QUEUED:
                continue
            result = self.storage.validate(task.source, bucket=self.options.bucket)
            if not result.valid:
                errors[task.id] = result.error or "File rejected"
        return errors

    async def submit_create(
        self,
        repository: EntityRepository,
        payload: Mapping[str, Any],
        merge: MergeFn = merge_attachments,
    ) -> SubmissionResult:
        """Upload pending files, then create the entity."""
        return await self._submit(repository.create, payload, merge)

    async def submit_update(
        self,
        repository: EntityRepository,
        entity_id: str,
        changes: Mapping[str, Any],
        merge: MergeFn = merge_attachments,
    ) -> SubmissionResult:
        """Upload pending files, then update the entity."""

        async def write(data: dict[str, Any]) -> BaseModel:
            entity = await repository.update(entity_id, data)
            if entity is None:
                raise NotFoundError(
                    f"{repository.resource} record {entity_id} not found", {"id": entity_id}
                )
            return entity

        return await self._submit(write, changes, merge)

    def _ensure_idle(self, action: str) -> None:
        if self._busy:
            raise UploadStateError(f"Cannot {action} while a submission is in progress")

    def cancel(self) -> None:
        """Abort the in-flight upload; later files stay queued."""
        self._cancel_event.set()

    def discard(self) -> None:
        """Cancel and forget every task, e.g. when the form closes."""
        self.cancel()
        self._tasks.clear()
        self._attachments.clear()

    async def _submit(
        self,
        write: Callable[[dict[str, Any]], Awaitable[BaseModel]],
        payload: Mapping[str, Any],
        merge: MergeFn,
    ) -> SubmissionResult:
        """Run the upload sequence and the entity write.

        Raises:
            ValidationError: If a queued file breaks the bucket rules, or a
                failed task is still in the batch
            OrphanedUploadsError: If the entity write failed after uploads
                and the files were not (all) rolled back
            EduCMSError: If the entity write failed with nothing to clean up
        """
        if self._busy:
            raise UploadStateError("A submission is already in progress")

        failed = [task for task in self._tasks if task.state is UploadState.ERROR]
        if failed:
            raise ValidationError(
                f"Remove the failed file {failed[0].source.name} before submitting",
                {"task_id": failed[0].id},
            )

        errors = self.validate_pending()
        if errors:
            raise ValidationError(next(iter(errors.values())), {"files": errors})

        self._busy = True
        self._cancel_event.clear()
        try:
            batch = list(self._tasks)
            for task in batch:
                if task.is_terminal:
                    continue
                outcome = await self._upload(task)
                if outcome is not None:
                    return outcome
            if self._cancel_event.is_set():
                return SubmissionResult(status="cancelled", error="Upload cancelled")

            attachments = [self._attachments[task.id] for task in batch]
            try:
                entity = await write(merge(dict(payload), attachments))
            except EduCMSError as e:
                await self._handle_entity_failure(e)
                raise

            logger.info(
                "Submission saved",
                bucket=self.options.bucket,
                attachments=len(attachments),
            )
            return SubmissionResult(status="saved", entity=entity, attachments=attachments)
        finally:
            self._busy = False

    async def _upload(self, task: UploadTask) -> SubmissionResult | None:
        """Upload one task; returns a result only when the sequence must stop."""
        log = logger.bind(task_id=task.id, file=task.source.name, bucket=self.options.bucket)

        if self._cancel_event.is_set():
            return SubmissionResult(status="cancelled", error="Upload cancelled")

        task.start()
        try:
            stored = await self.storage.upload(
                task.source,
                self.options,
                on_progress=lambda percent: self._progress(task, percent),
                cancel_event=self._cancel_event,
            )
        except EduCMSError as e:
            task.fail(e.user_message)
            log.warning("Upload task failed", error=e.message, kind=e.kind.value)
            status = "cancelled" if isinstance(e, UploadCancelledError) else "upload_failed"
            return SubmissionResult(status=status, failed_task_id=task.id, error=e.user_message)

        task.complete(stored.url, stored.path)
        self._attachments[task.id] = Attachment(
            id=task.id,
            name=task.source.name,
            url=stored.url,
            size=task.source.size,
            type=task.source.content_type,
        )
        log.info("Upload task done", path=stored.path)
        return None

    def _progress(self, task: UploadTask, percent: int) -> None:
        task.report_progress(percent)
        if self.on_progress is not None:
            self.on_progress(task)

    async def _handle_entity_failure(self, error: EduCMSError) -> None:
        uploaded = [
            task.storage_path
            for task in self._tasks
            if task.state is UploadState.DONE and task.storage_path
        ]
        if not uploaded:
            return

        bucket = self.options.bucket
        if not self.rollback_on_failure:
            logger.error(
                "Entity write failed after uploads",
                bucket=bucket,
                orphaned=uploaded,
                error=error.message,
            )
            raise OrphanedUploadsError(error, uploaded) from error

        leftovers = []
        for index, task in enumerate(self._tasks):
            if task.storage_path not in uploaded:
                continue
            if not await self.storage.delete(bucket, task.storage_path):
                leftovers.append(task.storage_path)
                continue
            # Deleted files are re-queued so a retry uploads them again
            self._attachments.pop(task.id, None)
            self._tasks[index] = UploadTask(task.source)
        logger.warning(
            "Rolled back uploads after entity write failed",
            bucket=bucket,
            deleted=len(uploaded) - len(leftovers),
            leftovers=leftovers,
        )
        if leftovers:
            raise OrphanedUploadsError(error, leftovers) from error
