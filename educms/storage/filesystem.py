"""Filesystem storage backend for local development."""

import mimetypes
import os
import time
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from pathlib import Path

import aiofiles
import structlog

from educms.config.schemas import StorageConfig
from educms.errors import ConfigurationError, ConflictError, TransportError
from educms.models.storage import BucketStatus, FileMetadata
from educms.storage.base import StorageAdapter

logger = structlog.get_logger()


class FilesystemStorage(StorageAdapter):
    """Direct filesystem storage.

    Each bucket is a directory under ``base_path``:

        data/storage/
            ├── avatars/
            ├── documents/
            │   └── <user-id>/1718000000000-report.pdf
            └── announcements/

    Writes go to a ``.part`` file that is renamed into place, so readers
    never see a half-written object.
    """

    PARTIAL_SUFFIX = ".part"

    def __init__(
        self,
        base_path: str | Path,
        config: StorageConfig,
        chunk_size: int | None = None,
        create_buckets: bool = False,
        signed_url_expires: int = 3600,
    ):
        """Initialize with base path to bucket directories.

        Args:
            base_path: Root directory holding one directory per bucket
            config: Bucket rules and upload limits
            chunk_size: Upload chunk size in bytes
            create_buckets: Create missing bucket directories
            signed_url_expires: Default signed URL lifetime in seconds

        Raises:
            FileNotFoundError: If base_path doesn't exist and create_buckets is False
        """
        super().__init__(config, chunk_size=chunk_size, signed_url_expires=signed_url_expires)
        self.base_path = Path(base_path)
        if create_buckets:
            for bucket in config.buckets:
                (self.base_path / bucket).mkdir(parents=True, exist_ok=True)
        if not self.base_path.exists():
            raise FileNotFoundError(f"Storage path not found: {base_path}")

    def _object_file(self, bucket: str, path: str) -> Path:
        bucket_dir = (self.base_path / bucket).resolve()
        target = (bucket_dir / path).resolve()
        if bucket_dir not in target.parents:
            raise ConfigurationError(f"Invalid object path: {path}")
        return target

    async def check_bucket_access(self, bucket: str) -> BucketStatus:
        bucket_dir = self.base_path / bucket
        if not bucket_dir.is_dir():
            return BucketStatus(
                exists=False,
                error=(
                    f"Storage bucket '{bucket}' is not accessible. "
                    "Please ensure it exists and has proper permissions."
                ),
            )
        if not os.access(bucket_dir, os.W_OK):
            return BucketStatus(
                exists=False, error=f"Storage bucket '{bucket}' is not writable."
            )
        return BucketStatus(exists=True)

    async def _write_object(
        self,
        bucket: str,
        path: str,
        content: AsyncIterator[bytes],
        content_type: str,
        size: int,
    ) -> None:
        dest_path = self._object_file(bucket, path)
        if dest_path.exists():
            raise ConflictError(
                "A file with this name already exists. "
                "Please rename the file or choose a different location.",
                {"bucket": bucket},
            )
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        partial = dest_path.with_name(dest_path.name + self.PARTIAL_SUFFIX)

        try:
            async with aiofiles.open(partial, "wb") as f:
                async for chunk in content:
                    await f.write(chunk)
            os.replace(partial, dest_path)
        except OSError as e:
            raise TransportError(f"Failed to write file {path}: {e}") from e
        finally:
            if partial.exists():
                partial.unlink()

    async def exists(self, bucket: str, path: str) -> bool:
        return self._object_file(bucket, path).is_file()

    async def download(self, bucket: str, path: str) -> bytes | None:
        file_path = self._object_file(bucket, path)
        if not file_path.is_file():
            return None

        try:
            async with aiofiles.open(file_path, "rb") as f:
                return await f.read()
        except OSError as e:
            logger.error("Download failed", bucket=bucket, path=path, error=str(e))
            return None

    async def delete(self, bucket: str, path: str) -> bool:
        file_path = self._object_file(bucket, path)
        if not file_path.is_file():
            return False

        try:
            file_path.unlink()
            return True
        except OSError as e:
            logger.error("Delete failed", bucket=bucket, path=path, error=str(e))
            return False

    async def list_files(
        self, bucket: str, folder: str | None = None, limit: int = 100
    ) -> AsyncIterator[FileMetadata]:
        prefix = (folder or "").strip("/")
        directory = self.base_path / bucket / prefix
        if not directory.is_dir():
            return

        entries = [
            entry
            for entry in os.scandir(directory)
            if entry.is_file() and not entry.name.endswith(self.PARTIAL_SUFFIX)
        ]
        entries.sort(key=lambda entry: entry.stat().st_mtime, reverse=True)

        for entry in entries[:limit]:
            stat = entry.stat()
            path = f"{prefix}/{entry.name}" if prefix else entry.name
            guessed, _ = mimetypes.guess_type(entry.name)
            yield FileMetadata(
                id=path,
                name=entry.name,
                size=stat.st_size,
                type=guessed or "application/octet-stream",
                url=self.get_public_url(bucket, path) or "",
                uploaded_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            )

    def get_public_url(self, bucket: str, path: str) -> str | None:
        return self._object_file(bucket, path).as_uri()

    async def get_signed_url(
        self, bucket: str, path: str, expires_in: int | None = None
    ) -> str | None:
        file_path = self._object_file(bucket, path)
        if not file_path.is_file():
            return None
        expires_at = int(time.time()) + (expires_in or self.signed_url_expires)
        return f"{file_path.as_uri()}?expires={expires_at}"
