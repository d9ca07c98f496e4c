"""Hosted object storage over the platform's storage HTTP API."""

from collections.abc import AsyncIterator
from urllib.parse import quote

import httpx
import structlog

from educms.config.schemas import StorageConfig
from educms.errors import (
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    EduCMSError,
    TransportError,
    ValidationError,
)
from educms.http import decode_json, encode_json, send_with_retry
from educms.models.storage import BucketStatus, FileMetadata
from educms.settings import Settings
from educms.storage.base import StorageAdapter

logger = structlog.get_logger()

LIST_PAGE_SIZE = 100


class SupabaseStorage(StorageAdapter):
    """Storage adapter for the hosted platform's storage service.

    Objects live under ``/storage/v1/object/<bucket>/<path>``. Public
    buckets are served from ``/object/public``; private objects are shared
    through time-boxed signed URLs.
    """

    def __init__(
        self,
        settings: Settings,
        config: StorageConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the storage client.

        Args:
            settings: Application settings (platform URL and credentials)
            config: Bucket rules and upload limits
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(
            config,
            chunk_size=settings.upload_chunk_size,
            signed_url_expires=settings.signed_url_expires_seconds,
        )
        self.settings = settings
        self.base_url = f"{settings.table_api_url.rstrip('/')}/storage/v1"
        self.timeout = httpx.Timeout(settings.request_timeout_seconds)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            token = self.settings.access_token or self.settings.table_api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "apikey": self.settings.table_api_key,
                    "Authorization": f"Bearer {token}",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        client = await self._get_client()
        return await send_with_retry(
            client,
            method,
            url,
            attempts=self.settings.retry_attempts,
            backoff=self.settings.retry_backoff_seconds,
            **kwargs,
        )

    async def check_bucket_access(self, bucket: str) -> BucketStatus:
        """Probe a bucket by listing at most one object."""
        try:
            response = await self._send(
                "POST",
                f"/object/list/{bucket}",
                content=encode_json({"prefix": "", "limit": 1, "offset": 0}),
                headers={"Content-Type": "application/json"},
            )
        except TransportError as e:
            logger.error("Bucket check failed", bucket=bucket, error=e.message)
            return BucketStatus(
                exists=False,
                error=f"Failed to check storage bucket '{bucket}'. Please contact administrator.",
            )

        if response.is_error:
            logger.warning(
                "Bucket not accessible",
                bucket=bucket,
                status_code=response.status_code,
                detail=response.text,
            )
            return BucketStatus(
                exists=False,
                error=(
                    f"Storage bucket '{bucket}' is not accessible. "
                    "Please ensure it exists and has proper permissions."
                ),
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
        client = await self._get_client()
        try:
            response = await client.post(
                f"/object/{bucket}/{quote(path)}",
                content=content,
                headers={
                    "Content-Type": content_type,
                    "Cache-Control": "max-age=3600",
                    "x-upsert": "false",
                },
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Upload to '{bucket}' failed: {e}") from e

        if response.is_error:
            raise _classify_upload_error(bucket, response)

    async def exists(self, bucket: str, path: str) -> bool:
        response = await self._send("HEAD", f"/object/authenticated/{bucket}/{quote(path)}")
        return response.status_code == 200

    async def download(self, bucket: str, path: str) -> bytes | None:
        try:
            response = await self._send("GET", f"/object/authenticated/{bucket}/{quote(path)}")
        except TransportError:
            return None
        if response.is_error:
            logger.error(
                "Download failed", bucket=bucket, path=path, status_code=response.status_code
            )
            return None
        return response.content

    async def delete(self, bucket: str, path: str) -> bool:
        try:
            response = await self._send(
                "DELETE",
                f"/object/{bucket}",
                content=encode_json({"prefixes": [path]}),
                headers={"Content-Type": "application/json"},
            )
        except TransportError:
            return False
        if response.is_error:
            logger.error(
                "Delete failed", bucket=bucket, path=path, status_code=response.status_code
            )
            return False
        return True

    async def list_files(
        self, bucket: str, folder: str | None = None, limit: int = 100
    ) -> AsyncIterator[FileMetadata]:
        prefix = (folder or "").strip("/")
        offset = 0
        while offset < limit:
            batch_size = min(LIST_PAGE_SIZE, limit - offset)
            response = await self._send(
                "POST",
                f"/object/list/{bucket}",
                content=encode_json(
                    {
                        "prefix": prefix,
                        "limit": batch_size,
                        "offset": offset,
                        "sortBy": {"column": "created_at", "order": "desc"},
                    }
                ),
                headers={"Content-Type": "application/json"},
            )
            if response.is_error:
                logger.error(
                    "List files failed", bucket=bucket, status_code=response.status_code
                )
                return

            entries = decode_json(response) or []
            for entry in entries:
                yield self._to_metadata(bucket, prefix, entry)
            if len(entries) < batch_size:
                return
            offset += len(entries)

    def get_public_url(self, bucket: str, path: str) -> str | None:
        return f"{self.base_url}/object/public/{bucket}/{quote(path)}"

    async def get_signed_url(
        self, bucket: str, path: str, expires_in: int | None = None
    ) -> str | None:
        try:
            response = await self._send(
                "POST",
                f"/object/sign/{bucket}/{quote(path)}",
                content=encode_json({"expiresIn": expires_in or self.signed_url_expires}),
                headers={"Content-Type": "application/json"},
            )
        except TransportError:
            return None
        data = decode_json(response)
        if not isinstance(data, dict):
            data = {}
        signed = data.get("signedURL") or data.get("signedUrl")
        if response.is_error or not signed:
            logger.error("Signed URL failed", bucket=bucket, path=path)
            return None
        return f"{self.base_url}{signed}"

    def _to_metadata(self, bucket: str, prefix: str, entry: dict) -> FileMetadata:
        metadata = entry.get("metadata") or {}
        name = entry["name"]
        path = f"{prefix}/{name}" if prefix else name
        return FileMetadata(
            id=entry.get("id") or name,
            name=name,
            size=metadata.get("size") or 0,
            type=metadata.get("mimetype") or "application/octet-stream",
            url=self.get_public_url(bucket, path) or "",
            uploaded_at=entry.get("created_at"),
            uploaded_by=(entry.get("owner") or metadata.get("owner") or "Unknown"),
        )


def _classify_upload_error(bucket: str, response: httpx.Response) -> EduCMSError:
    """Turn a storage error response into a classified error.

    The service reports some failures as HTTP 400 with the real status in
    the body's ``statusCode`` field.
    """
    body = decode_json(response)
    body = body if isinstance(body, dict) else {}
    message = str(body.get("message") or body.get("error") or response.text)
    try:
        status = int(body.get("statusCode") or response.status_code)
    except (TypeError, ValueError):
        status = response.status_code
    lowered = message.lower()

    details = {"bucket": bucket, "status_code": status}
    if status in (401, 403) or "row-level security" in lowered:
        return AuthorizationError(
            f"Access denied: You don't have permission to upload to the '{bucket}' "
            "bucket. Please contact an administrator.",
            details,
        )
    if status == 409 or "duplicate" in lowered or "already exists" in lowered:
        return ConflictError(
            "A file with this name already exists. "
            "Please rename the file or choose a different location.",
            details,
        )
    if status == 404 or "not found" in lowered:
        return ConfigurationError(
            f"Storage bucket '{bucket}' not found. Please ensure it exists.", details
        )
    if status in (400, 413, 415, 422):
        return ValidationError(message, details)
    return TransportError(f"Upload to '{bucket}' failed: {message}", details)
