"""Configuration loaders and schemas."""

from educms.config.loader import (
    get_default_storage_config,
    load_storage_config,
    load_storage_config_file,
    reload_configs,
)
from educms.config.schemas import BucketRules, StorageConfig, UploadLimits

__all__ = [
    "get_default_storage_config",
    "load_storage_config",
    "load_storage_config_file",
    "reload_configs",
    "BucketRules",
    "StorageConfig",
    "UploadLimits",
]
