"""Entity CRUD backend clients."""

import httpx

from educms.settings import Settings

from .base import BackendClient, BackendKind, Page, WireRecord
from .rest import ApiEnvelope, RestBackend
from .table import TableBackend


def create_backend(
    kind: BackendKind,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BackendClient:
    """Instantiate the backend client for ``kind``."""
    if kind is BackendKind.REST:
        return RestBackend(settings, transport=transport)
    return TableBackend(settings, transport=transport)


__all__ = [
    "ApiEnvelope",
    "BackendClient",
    "BackendKind",
    "Page",
    "RestBackend",
    "TableBackend",
    "WireRecord",
    "create_backend",
]
