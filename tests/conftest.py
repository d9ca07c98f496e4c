"""Pytest fixtures for testing."""

import os
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from educms.config.loader import get_default_storage_config
from educms.config.schemas import StorageConfig
from educms.settings import Settings

PROJECT_ROOT = Path(__file__).parent.parent

# Set test environment
os.environ.setdefault("EDUCMS_ENVIRONMENT", "test")
os.environ.setdefault("EDUCMS_CONFIG_DIR", str(PROJECT_ROOT / "config"))

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def config_dir(project_root: Path) -> Path:
    """Get the config directory."""
    return project_root / "config"


@pytest.fixture
def settings() -> Settings:
    """Settings pointing at fake hosts, without retry delays."""
    return Settings(
        _env_file=None,
        table_api_url="http://table.test",
        table_api_key="anon-key",
        access_token="user-token",
        rest_api_url="http://rest.test/api/v1",
        rest_api_token="rest-token",
        rest_page_size=2,
        retry_attempts=2,
        retry_backoff_seconds=0,
        upload_chunk_size=1024,
    )


@pytest.fixture
def storage_config() -> StorageConfig:
    """The default three-bucket configuration."""
    return StorageConfig(**get_default_storage_config())


@pytest.fixture
def recorder():
    """Build an httpx.MockTransport that records every request.

    Usage:
        transport, requests = recorder(handler)
    """

    def build(handler: Handler) -> tuple[httpx.MockTransport, list[httpx.Request]]:
        requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            request.read()
            requests.append(request)
            return handler(request)

        return httpx.MockTransport(record), requests

    return build


@pytest.fixture
def make_envelope():
    """Build REST API response envelopes."""

    def build(data=None, success: bool = True, message: str | None = None, errors=None) -> dict:
        return {
            "success": success,
            "data": data,
            "message": message,
            "errors": errors or [],
            "timestamp": "2025-09-01T10:00:00Z",
        }

    return build
