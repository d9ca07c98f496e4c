"""Pydantic schemas for configuration files."""

from pydantic import BaseModel, Field


class BucketRules(BaseModel):
    """Client-side constraints and metadata for one storage bucket."""

    public: bool = False
    max_size: int = Field(default=50 * 1024 * 1024, gt=0)
    allowed_types: list[str] = Field(default_factory=list)
    description: str = ""
    policies: list[str] = Field(default_factory=list)


class UploadLimits(BaseModel):
    """Batch upload limits."""

    max_files: int = Field(default=10, ge=1)
    chunk_size: int = Field(default=256 * 1024, gt=0)


class StorageConfig(BaseModel):
    """Configuration for object storage buckets."""

    buckets: dict[str, BucketRules]
    upload: UploadLimits = Field(default_factory=UploadLimits)

    def rules_for(self, bucket: str) -> BucketRules | None:
        """Get the rules for a bucket, if it is configured."""
        return self.buckets.get(bucket)
