"""Backend client for the versioned REST API.

Every response is wrapped in an envelope::

    {"success": true, "data": ..., "message": "...", "errors": [], "timestamp": "..."}

Field names are camelCase and enums travel as small integer codes. Bulk
reads are paginated with ``pageNumber``/``pageSize`` query parameters.
"""

from datetime import datetime
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, field_validator
from pydantic import ValidationError as PydanticValidationError

from educms.backends.base import BackendClient, BackendKind, Page, WireRecord
from educms.errors import (
    EduCMSError,
    TransportError,
    ValidationError,
    error_for_status,
)
from educms.http import decode_json, encode_json, send_with_retry
from educms.settings import Settings

logger = structlog.get_logger()

# Server-managed fields stripped before a full-replacement PUT
READ_ONLY_FIELDS = frozenset({"id", "createdAt", "updatedAt"})


class ApiEnvelope(BaseModel):
    """Uniform response wrapper.

    Model-binding failures skip the envelope and come back as problem
    details (``title`` plus ``errors`` keyed by field); both shapes parse.
    """

    success: bool = False
    data: Any = None
    message: str | None = None
    title: str | None = None
    errors: list[str] | None = None
    timestamp: datetime | None = None

    @field_validator("errors", mode="before")
    @classmethod
    def flatten_errors(cls, value: Any) -> Any:
        if isinstance(value, dict):
            flat = []
            for field, messages in value.items():
                if isinstance(messages, (list, tuple)):
                    flat.extend(f"{field}: {m}" for m in messages)
                else:
                    flat.append(f"{field}: {messages}")
            return flat
        if isinstance(value, list):
            return [str(item) for item in value]
        return value

    @property
    def detail(self) -> str | None:
        return self.message or self.title


class RestBackend(BackendClient):
    """CRUD over the REST API.

    ``get_all`` returns one ``Page``; callers ask for further pages with
    ``page_number``. Updates read the current record and PUT the merged
    result, since the API replaces the whole resource.
    """

    kind = BackendKind.REST

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the REST API client.

        Args:
            settings: Application settings
            transport: Optional httpx transport (used by tests)
        """
        self.settings = settings
        self.base_url = settings.rest_api_url.rstrip("/")
        self.page_size = settings.rest_page_size
        self.timeout = httpx.Timeout(settings.request_timeout_seconds)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            if self.settings.rest_api_token:
                headers["Authorization"] = f"Bearer {self.settings.rest_api_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        payload: WireRecord | None = None,
    ) -> Any:
        """Send a request and unwrap the envelope.

        Returns:
            The envelope's ``data`` member
        """
        client = await self._get_client()
        response = await send_with_retry(
            client,
            method,
            path,
            attempts=self.settings.retry_attempts,
            backoff=self.settings.retry_backoff_seconds,
            params=params,
            content=encode_json(payload) if payload is not None else None,
        )

        envelope = _parse_envelope(decode_json(response))

        if response.is_error:
            raise self._classify(method, path, response, envelope)
        if envelope is None:
            raise TransportError(
                f"REST API {method} {path} returned an unreadable body",
                {"status_code": response.status_code},
            )
        if not envelope.success:
            logger.warning(
                "REST API reported failure",
                method=method,
                path=path,
                detail=envelope.message,
                errors=envelope.errors,
            )
            raise ValidationError(
                envelope.message or "Request was rejected",
                {"errors": envelope.errors or []},
            )
        return envelope.data

    def _classify(
        self,
        method: str,
        path: str,
        response: httpx.Response,
        envelope: ApiEnvelope | None,
    ) -> EduCMSError:
        message = (envelope.detail if envelope else None) or (
            f"HTTP {response.status_code}: {response.reason_phrase}"
        )
        errors = (envelope.errors if envelope else None) or []
        error_cls = error_for_status(response.status_code)

        logger.error(
            "REST API error",
            method=method,
            path=path,
            status_code=response.status_code,
            detail=message,
            errors=errors,
        )
        details = {"status_code": response.status_code, "errors": errors}
        if error_cls is TransportError:
            return TransportError(f"REST API {method} {path} failed: {message}", details)
        return error_cls(message, details)

    async def get_all(self, resource: str, page_number: int = 1) -> Page:
        data = await self._request(
            "GET",
            f"/{resource}",
            params={"pageNumber": page_number, "pageSize": self.page_size},
        )
        return Page.model_validate(data or {})

    async def _record(
        self, method: str, path: str, payload: WireRecord | None = None
    ) -> WireRecord:
        """Request a single record; an envelope without one is a server fault."""
        data = await self._request(method, path, payload=payload)
        if not isinstance(data, dict):
            raise TransportError(
                f"REST API {method} {path} returned no data", {"data": data}
            )
        return data

    async def get_by_id(self, resource: str, entity_id: str) -> WireRecord:
        return await self._record("GET", f"/{resource}/{entity_id}")

    async def create(self, resource: str, payload: WireRecord) -> WireRecord:
        record = await self._record("POST", f"/{resource}", payload=payload)
        logger.info("Record created", resource=resource, id=record.get("id"))
        return record

    async def update(
        self, resource: str, entity_id: str, payload: WireRecord
    ) -> WireRecord:
        current = await self.get_by_id(resource, entity_id)
        merged = {k: v for k, v in current.items() if k not in READ_ONLY_FIELDS}
        merged.update({k: v for k, v in payload.items() if k not in READ_ONLY_FIELDS})
        return await self._record("PUT", f"/{resource}/{entity_id}", payload=merged)

    async def delete(self, resource: str, entity_id: str) -> None:
        await self._request("DELETE", f"/{resource}/{entity_id}")
        logger.info("Record deleted", resource=resource, id=entity_id)

    async def update_avatar(self, student_id: str, avatar_url: str) -> None:
        await self._request(
            "PATCH", f"/students/{student_id}/avatar", payload={"avatarUrl": avatar_url}
        )

    async def health_check(self) -> dict[str, Any]:
        # Health endpoint sits at the API root, outside /api/v1
        root = httpx.URL(self.base_url).copy_with(path="/health")
        client = await self._get_client()
        response = await send_with_retry(
            client,
            "GET",
            str(root),
            attempts=self.settings.retry_attempts,
            backoff=self.settings.retry_backoff_seconds,
        )
        if response.is_error:
            raise self._classify("GET", "/health", response, None)
        body = decode_json(response)
        return body if isinstance(body, dict) else {"status": response.text.strip()}


def _parse_envelope(body: Any) -> ApiEnvelope | None:
    """Parse a response body, or None when it is not an envelope."""
    if not isinstance(body, dict):
        return None
    try:
        return ApiEnvelope.model_validate(body)
    except PydanticValidationError as e:
        logger.warning("Unreadable REST API envelope", error=str(e))
        return None
