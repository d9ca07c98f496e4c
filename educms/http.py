"""HTTP helpers shared by the backend clients and the storage adapter."""

from typing import Any

import httpx
import orjson
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from educms.errors import TransportError

logger = structlog.get_logger()

RETRYABLE_EXCEPTIONS = (httpx.NetworkError, httpx.TimeoutException)


async def send_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    attempts: int = 3,
    backoff: float = 1.0,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying network errors and timeouts.

    Only requests with a replayable body may go through here; streaming
    uploads call the client directly.

    Raises:
        TransportError: If every attempt failed at the transport level
    """
    try:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=backoff, min=0, max=10),
            reraise=True,
        ):
            with attempt:
                return await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.error("Request failed", method=method, url=url, error=str(e))
        raise TransportError(f"{method} {url} failed: {e}") from e


def decode_json(response: httpx.Response) -> Any:
    """Decode a JSON body, returning None for empty or non-JSON bodies."""
    if not response.content:
        return None
    try:
        return orjson.loads(response.content)
    except orjson.JSONDecodeError:
        return None


def encode_json(payload: Any) -> bytes:
    """Encode a request body."""
    return orjson.dumps(payload)
