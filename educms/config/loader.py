"""Configuration file loaders."""

import os
from functools import lru_cache
from pathlib import Path

import yaml

from educms.config.schemas import StorageConfig


def _get_config_dir(config_dir: str | None = None) -> Path:
    """Get the config directory path, preferring an explicit one."""
    config_dir = config_dir or os.environ.get("EDUCMS_CONFIG_DIR")
    if config_dir:
        return Path(config_dir)

    # Default: look for config dir relative to project root
    current = Path(__file__).resolve()
    for parent in current.parents:
        config_path = parent / "config"
        if config_path.is_dir() and (config_path / "storage.yaml").exists():
            return config_path

    raise FileNotFoundError("Config directory not found")


def _load_yaml(path: Path) -> dict:
    """Load a YAML config file."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: dict | list | str) -> dict | list | str:
    """Recursively expand environment variables in config values."""
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    if isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        return os.environ.get(env_var, data)
    return data


def load_storage_config_file(path: str | Path) -> StorageConfig:
    """Load and validate a storage configuration file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated StorageConfig

    Raises:
        FileNotFoundError: If the file doesn't exist
        pydantic.ValidationError: If schema validation fails
    """
    data = _expand_env_vars(_load_yaml(Path(path)))
    return StorageConfig(**data)


@lru_cache
def load_storage_config(config_dir: str | None = None) -> StorageConfig:
    """Load the storage configuration from the config directory.

    Args:
        config_dir: Directory holding storage.yaml. Falls back to
            EDUCMS_CONFIG_DIR, then to the project's config directory.
    """
    return load_storage_config_file(_get_config_dir(config_dir) / "storage.yaml")


def get_default_storage_config() -> dict:
    """Return default storage configuration as a dictionary.

    Used by ``educms init-config`` to write a starting storage.yaml.
    """
    word_types = [
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ]
    return {
        "buckets": {
            "avatars": {
                "public": True,
                "max_size": 5 * 1024 * 1024,
                "allowed_types": ["image/jpeg", "image/png", "image/gif", "image/webp"],
                "description": "Student and user profile pictures",
                "policies": [
                    "Allow authenticated users to upload their own avatars",
                    "Allow public read access for profile pictures",
                    "Allow users to update their own avatars",
                ],
            },
            "documents": {
                "public": False,
                "max_size": 50 * 1024 * 1024,
                "allowed_types": [
                    "application/pdf",
                    *word_types,
                    "text/plain",
                    "image/jpeg",
                    "image/png",
                    "image/gif",
                ],
                "description": "Document library files",
                "policies": [
                    "Allow authenticated users to upload documents",
                    "Allow role-based access (admin, teacher can upload/delete)",
                    "Allow students to read public documents only",
                ],
            },
            "announcements": {
                "public": False,
                "max_size": 10 * 1024 * 1024,
                "allowed_types": [
                    "application/pdf",
                    "image/jpeg",
                    "image/png",
                    "image/gif",
                    *word_types,
                ],
                "description": "Announcement attachments",
                "policies": [
                    "Allow admin and teachers to upload attachments",
                    "Allow all authenticated users to read attachments",
                    "Restrict delete operations to admins and file owners",
                ],
            },
        },
        "upload": {"max_files": 10, "chunk_size": 256 * 1024},
    }


def reload_configs() -> None:
    """Clear cached configs to force reload."""
    load_storage_config.cache_clear()
