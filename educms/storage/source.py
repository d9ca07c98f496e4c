"""File handles for upload sources."""

import mimetypes
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class SourceFile:
    """A file to upload: name, size, MIME type and a way to read its bytes.

    Exactly one of ``data`` or ``path`` is set. Path-backed files are read
    lazily in chunks so large files never sit in memory.
    """

    name: str
    size: int
    content_type: str = DEFAULT_CONTENT_TYPE
    data: bytes | None = field(default=None, repr=False)
    path: Path | None = None

    @classmethod
    def from_bytes(
        cls, name: str, data: bytes, content_type: str | None = None
    ) -> "SourceFile":
        """Wrap in-memory bytes."""
        return cls(
            name=name,
            size=len(data),
            content_type=content_type or _guess_type(name),
            data=data,
        )

    @classmethod
    def from_path(
        cls, path: str | Path, content_type: str | None = None
    ) -> "SourceFile":
        """Wrap a local file.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        return cls(
            name=file_path.name,
            size=file_path.stat().st_size,
            content_type=content_type or _guess_type(file_path.name),
            path=file_path,
        )

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        """Yield the file content in chunks of at most ``chunk_size`` bytes."""
        if self.data is not None:
            for start in range(0, len(self.data), chunk_size):
                yield self.data[start : start + chunk_size]
            return

        if self.path is None:
            raise ValueError(f"Source file {self.name} has no content")

        async with aiofiles.open(self.path, "rb") as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                yield chunk

    async def read(self) -> bytes:
        """Read the whole file."""
        if self.data is not None:
            return self.data
        return b"".join([chunk async for chunk in self.iter_chunks(1024 * 1024)])


def _guess_type(name: str) -> str:
    guessed, _ = mimetypes.guess_type(name)
    return guessed or DEFAULT_CONTENT_TYPE
