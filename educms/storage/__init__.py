"""Storage adapter factory."""

import httpx

from educms.config.loader import load_storage_config
from educms.config.schemas import StorageConfig
from educms.errors import ConfigurationError
from educms.settings import Settings

from .base import StorageAdapter
from .filesystem import FilesystemStorage
from .source import SourceFile
from .supabase import SupabaseStorage
from .validation import format_file_size, type_allowed, validate_file


def get_storage(
    settings: Settings,
    config: StorageConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> StorageAdapter:
    """Get the configured storage adapter.

    Returns the adapter named by ``settings.storage_backend``.

    Raises:
        ConfigurationError: If an unknown storage backend is configured
        FileNotFoundError: If the filesystem backend path doesn't exist
    """
    config = config or load_storage_config(settings.config_dir)
    if settings.storage_backend == "supabase":
        return SupabaseStorage(settings, config, transport=transport)
    if settings.storage_backend == "filesystem":
        return FilesystemStorage(
            settings.storage_path,
            config,
            chunk_size=settings.upload_chunk_size,
            signed_url_expires=settings.signed_url_expires_seconds,
        )
    raise ConfigurationError(
        f"Unknown storage backend: {settings.storage_backend}. "
        f"Supported backends: supabase, filesystem"
    )


__all__ = [
    "FilesystemStorage",
    "SourceFile",
    "StorageAdapter",
    "SupabaseStorage",
    "format_file_size",
    "get_storage",
    "type_allowed",
    "validate_file",
]
