"""Storage adapter interface."""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable

import structlog

from educms.config.schemas import BucketRules, StorageConfig
from educms.errors import (
    ConfigurationError,
    EduCMSError,
    TransportError,
    UploadCancelledError,
    ValidationError,
)
from educms.models.storage import (
    BucketSetupInstructions,
    BucketStatus,
    FileMetadata,
    StorageStatus,
    StoredObject,
    UploadOptions,
    ValidationResult,
)
from educms.storage.source import SourceFile
from educms.storage.validation import DEFAULT_MAX_SIZE, validate_file

logger = structlog.get_logger()

ProgressCallback = Callable[[int], None]


class StorageAdapter(ABC):
    """Abstract object storage interface.

    Subclasses implement the raw object operations; this class owns the
    upload sequence: validate, probe the bucket, stream chunks with progress,
    and clean up anything left behind by a failed transfer.
    """

    def __init__(
        self,
        config: StorageConfig,
        chunk_size: int | None = None,
        signed_url_expires: int = 3600,
    ):
        """Initialize with bucket configuration.

        Args:
            config: Bucket rules and upload limits
            chunk_size: Upload chunk size in bytes (defaults to config)
            signed_url_expires: Default signed URL lifetime in seconds
        """
        self.config = config
        self.chunk_size = chunk_size or config.upload.chunk_size
        self.signed_url_expires = signed_url_expires

    # -- raw operations -------------------------------------------------

    @abstractmethod
    async def check_bucket_access(self, bucket: str) -> BucketStatus:
        """Probe whether a bucket exists and is accessible."""

    @abstractmethod
    async def _write_object(
        self,
        bucket: str,
        path: str,
        content: AsyncIterator[bytes],
        content_type: str,
        size: int,
    ) -> None:
        """Write an object without overwriting.

        Raises:
            ConflictError: If the path already exists
            AuthorizationError: If the caller may not write to the bucket
            ConfigurationError: If the bucket is missing
            TransportError: On any other failure
        """

    @abstractmethod
    async def exists(self, bucket: str, path: str) -> bool:
        """Check if an object exists."""

    @abstractmethod
    async def download(self, bucket: str, path: str) -> bytes | None:
        """Download an object, or None if it cannot be read."""

    @abstractmethod
    async def delete(self, bucket: str, path: str) -> bool:
        """Delete an object. Returns False if it could not be deleted."""

    @abstractmethod
    def list_files(
        self, bucket: str, folder: str | None = None, limit: int = 100
    ) -> AsyncIterator[FileMetadata]:
        """Lazily list up to ``limit`` objects, newest first.

        The returned iterator is single-use.
        """

    @abstractmethod
    def get_public_url(self, bucket: str, path: str) -> str | None:
        """Get the public URL of an object."""

    @abstractmethod
    async def get_signed_url(
        self, bucket: str, path: str, expires_in: int | None = None
    ) -> str | None:
        """Get a URL valid for ``expires_in`` seconds. Do not cache it longer.

        Without ``expires_in`` the adapter's ``signed_url_expires`` applies.
        """

    async def close(self) -> None:
        """Release network resources."""

    # -- validation -----------------------------------------------------

    def rules_for(self, bucket: str) -> BucketRules | None:
        return self.config.rules_for(bucket)

    def validate(
        self,
        file: SourceFile,
        max_size: int | None = None,
        allowed_types: list[str] | None = None,
        bucket: str | None = None,
    ) -> ValidationResult:
        """Validate a file against explicit limits or a bucket's rules."""
        rules = self.rules_for(bucket) if bucket else None
        if max_size is None:
            max_size = rules.max_size if rules else DEFAULT_MAX_SIZE
        if allowed_types is None:
            allowed_types = rules.allowed_types if rules else []
        return validate_file(file, max_size=max_size, allowed_types=allowed_types)

    # -- upload sequence ------------------------------------------------

    async def upload(
        self,
        file: SourceFile,
        options: UploadOptions,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> StoredObject:
        """Upload a file.

        Progress is reported as non-decreasing integer percentages ending
        at 100 on success. Setting ``cancel_event`` aborts the transfer
        between chunks.

        Raises:
            ValidationError: If the file breaks the bucket's rules (no I/O done)
            ConfigurationError: If the bucket is missing or inaccessible
            AuthorizationError: If the caller may not upload
            ConflictError: If the object name already exists
            UploadCancelledError: If ``cancel_event`` was set
            TransportError: On any other failure
        """
        bucket = options.bucket
        result = self.validate(file, bucket=bucket)
        if not result.valid:
            raise ValidationError(result.error or "File rejected", {"file": file.name})

        status = await self.check_bucket_access(bucket)
        if not status.exists:
            raise ConfigurationError(
                status.error or f"Storage bucket '{bucket}' is not available",
                {"bucket": bucket},
            )

        path = self._object_path(file, options)
        log = logger.bind(bucket=bucket, path=path, size=file.size)
        log.info("Uploading file")

        reporter = _ProgressReporter(file.size, on_progress)
        chunks = self._chunks(file, reporter, cancel_event)

        try:
            await self._write_object(bucket, path, chunks, file.content_type, file.size)
        except TransportError as e:
            await self._discard_partial(bucket, path)
            log.error("Upload failed", error=e.message, kind=e.kind.value)
            raise
        except EduCMSError as e:
            log.warning("Upload rejected", error=e.message, kind=e.kind.value)
            raise

        reporter.finish()

        rules = self.rules_for(bucket)
        public_url = None
        if options.is_public or (rules is not None and rules.public):
            public_url = self.get_public_url(bucket, path)

        log.info("Upload complete")
        return StoredObject(path=path, full_path=f"{bucket}/{path}", public_url=public_url)

    async def upload_files(
        self,
        files: list[SourceFile],
        options: UploadOptions,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[StoredObject | EduCMSError]:
        """Upload several files one after another.

        Unlike the upload coordinator this does not stop at the first
        failure; each slot holds the stored object or the error.
        """
        results: list[StoredObject | EduCMSError] = []
        for index, file in enumerate(files):
            callback = None
            if on_progress is not None:
                callback = lambda percent, i=index: on_progress(i, percent)  # noqa: E731
            try:
                results.append(await self.upload(file, options, callback))
            except EduCMSError as e:
                results.append(e)
        return results

    async def get_storage_status(self) -> StorageStatus:
        """Check accessibility of every configured bucket."""
        status = StorageStatus()
        for bucket in self.config.buckets:
            check = await self.check_bucket_access(bucket)
            status.buckets[bucket] = check
            if not check.exists:
                status.all_ready = False
        return status

    def get_bucket_setup_instructions(self) -> list[BucketSetupInstructions]:
        """Recommended manual setup for each configured bucket."""
        return [
            BucketSetupInstructions(
                bucket=name,
                description=rules.description,
                is_public=rules.public,
                policies=list(rules.policies),
            )
            for name, rules in self.config.buckets.items()
        ]

    # -- helpers --------------------------------------------------------

    def _object_path(self, file: SourceFile, options: UploadOptions) -> str:
        file_name = options.file_name or f"{int(time.time() * 1000)}-{file.name}"
        folder = options.folder.strip("/")
        return f"{folder}/{file_name}" if folder else file_name

    async def _chunks(
        self,
        file: SourceFile,
        reporter: "_ProgressReporter",
        cancel_event: asyncio.Event | None,
    ) -> AsyncIterator[bytes]:
        async for chunk in file.iter_chunks(self.chunk_size):
            if cancel_event is not None and cancel_event.is_set():
                raise UploadCancelledError(f"Upload of {file.name} cancelled")
            reporter.advance(len(chunk))
            yield chunk

    async def _discard_partial(self, bucket: str, path: str) -> None:
        """Remove an object a failed transfer may have left visible."""
        try:
            if await self.exists(bucket, path):
                logger.warning("Removing partial upload", bucket=bucket, path=path)
                await self.delete(bucket, path)
        except EduCMSError as e:
            logger.error(
                "Could not verify partial upload", bucket=bucket, path=path, error=e.message
            )


class _ProgressReporter:
    """Turns byte counts into non-decreasing percentages.

    Stays below 100 until the write is acknowledged.
    """

    def __init__(self, total: int, callback: ProgressCallback | None):
        self.total = total
        self.callback = callback
        self.sent = 0
        self.last = 0

    def advance(self, count: int) -> None:
        self.sent += count
        if self.total > 0:
            self._emit(min(99, self.sent * 100 // self.total))

    def finish(self) -> None:
        self._emit(100)

    def _emit(self, percent: int) -> None:
        if percent <= self.last:
            return
        self.last = percent
        if self.callback is not None:
            self.callback(percent)
