"""Backend client for the hosted relational table API.

Rows are read and written through a PostgREST-style surface at
``<url>/rest/v1/<table>``. Column names are snake_case and enums are stored
as symbolic strings. Row-level security on the server decides what the
caller may see; this client applies no filtering of its own.
"""

from typing import Any

import httpx
import structlog

from educms.backends.base import BackendClient, BackendKind, WireRecord
from educms.errors import (
    AuthorizationError,
    ConflictError,
    EduCMSError,
    NotFoundError,
    TransportError,
    ValidationError,
    error_for_status,
)
from educms.http import decode_json, encode_json, send_with_retry
from educms.settings import Settings

logger = structlog.get_logger()

# Database error codes that refine the HTTP status
_PG_ERROR_CODES: dict[str, type[EduCMSError]] = {
    "23505": ConflictError,  # unique_violation
    "23503": ValidationError,  # foreign_key_violation
    "23502": ValidationError,  # not_null_violation
    "23514": ValidationError,  # check_violation
    "22P02": ValidationError,  # invalid_text_representation
    "42501": AuthorizationError,  # insufficient_privilege
    "PGRST301": AuthorizationError,  # JWT invalid
}


class TableBackend(BackendClient):
    """CRUD over the relational table API.

    ``get_all`` returns a flat list ordered newest first.
    """

    kind = BackendKind.TABLE

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the table API client.

        Args:
            settings: Application settings
            transport: Optional httpx transport (used by tests)
        """
        self.settings = settings
        self.base_url = f"{settings.table_api_url.rstrip('/')}/rest/v1"
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
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
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
        resource: str,
        *,
        params: dict[str, str] | None = None,
        payload: WireRecord | None = None,
        prefer: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        request_headers = dict(headers or {})
        if prefer:
            request_headers["Prefer"] = prefer

        response = await send_with_retry(
            client,
            method,
            f"/{resource}",
            attempts=self.settings.retry_attempts,
            backoff=self.settings.retry_backoff_seconds,
            params=params,
            content=encode_json(payload) if payload is not None else None,
            headers=request_headers,
        )
        if response.is_error:
            raise self._classify(method, resource, response)
        return response

    def _classify(
        self, method: str, resource: str, response: httpx.Response
    ) -> EduCMSError:
        body = decode_json(response)
        body = body if isinstance(body, dict) else {}
        code = str(body.get("code") or "")
        message = body.get("message") or response.text or response.reason_phrase
        error_cls = _PG_ERROR_CODES.get(code) or error_for_status(response.status_code)

        logger.error(
            "Table API error",
            method=method,
            resource=resource,
            status_code=response.status_code,
            code=code,
            detail=message,
        )
        details = {"status_code": response.status_code, "code": code}
        if body.get("details"):
            details["details"] = body["details"]
        if error_cls is TransportError:
            return TransportError(f"Table API {method} /{resource} failed: {message}", details)
        return error_cls(message, details)

    async def get_all(self, resource: str) -> list[WireRecord]:
        response = await self._request(
            "GET", resource, params={"select": "*", "order": "created_at.desc"}
        )
        return decode_json(response) or []

    async def get_by_id(self, resource: str, entity_id: str) -> WireRecord:
        response = await self._request(
            "GET", resource, params={"select": "*", "id": f"eq.{entity_id}"}
        )
        return self._single(resource, entity_id, decode_json(response))

    async def create(self, resource: str, payload: WireRecord) -> WireRecord:
        response = await self._request(
            "POST", resource, payload=payload, prefer="return=representation"
        )
        rows = decode_json(response) or []
        if not rows:
            raise TransportError(f"Table API returned no row for created {resource}")
        logger.info("Row created", resource=resource, id=rows[0].get("id"))
        return rows[0]

    async def update(
        self, resource: str, entity_id: str, payload: WireRecord
    ) -> WireRecord:
        response = await self._request(
            "PATCH",
            resource,
            params={"id": f"eq.{entity_id}"},
            payload=payload,
            prefer="return=representation",
        )
        return self._single(resource, entity_id, decode_json(response))

    async def delete(self, resource: str, entity_id: str) -> None:
        response = await self._request(
            "DELETE",
            resource,
            params={"id": f"eq.{entity_id}"},
            prefer="return=representation",
        )
        self._single(resource, entity_id, decode_json(response))
        logger.info("Row deleted", resource=resource, id=entity_id)

    async def update_avatar(self, student_id: str, avatar_url: str) -> None:
        await self.update("students", student_id, {"avatar_url": avatar_url})

    async def health_check(self) -> dict[str, Any]:
        response = await self._request(
            "GET",
            "students",
            params={"select": "id"},
            prefer="count=exact",
            headers={"Range": "0-0"},
        )
        content_range = response.headers.get("Content-Range", "")
        total = content_range.rsplit("/", 1)[-1]
        return {"student_count": int(total) if total.isdigit() else None}

    @staticmethod
    def _single(resource: str, entity_id: str, rows: Any) -> WireRecord:
        # Filters that match nothing return an empty array, not a 404
        if not rows:
            raise NotFoundError(f"{resource} record {entity_id} not found", {"id": entity_id})
        return rows[0]
