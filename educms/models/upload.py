"""Upload task state machine."""

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from educms.storage.source import SourceFile


class UploadState(str, Enum):
    """Lifecycle state of one file in a batch upload."""

    QUEUED = "queued"
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATES = frozenset({UploadState.DONE, UploadState.ERROR})


class UploadStateError(RuntimeError):
    """Raised on an illegal upload task transition."""


class UploadTaskSnapshot(BaseModel):
    """Immutable view of an upload task for rendering."""

    id: str
    name: str
    size: int
    type: str
    progress: int = Field(ge=0, le=100)
    state: UploadState
    result_url: str | None = None
    error_message: str | None = None


class UploadTask:
    """Per-file upload record.

    queued -> uploading -> done | error. ``result_url`` is set only in
    ``done``, ``error_message`` only in ``error``; terminal states never
    change.
    """

    def __init__(self, source: SourceFile, task_id: str | None = None):
        self.id = task_id or uuid4().hex
        self.source = source
        self.progress = 0
        self.state = UploadState.QUEUED
        self.result_url: str | None = None
        self.error_message: str | None = None
        self.storage_path: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def start(self) -> None:
        if self.state is not UploadState.QUEUED:
            raise UploadStateError(f"Cannot start task {self.id} in state {self.state.value}")
        self.state = UploadState.UPLOADING

    def report_progress(self, percent: float) -> None:
        """Record progress; values never decrease while uploading."""
        if self.state is not UploadState.UPLOADING:
            return
        value = max(0, min(100, int(percent)))
        if value > self.progress:
            self.progress = value

    def complete(self, result_url: str, storage_path: str | None = None) -> None:
        if self.state is not UploadState.UPLOADING:
            raise UploadStateError(f"Cannot complete task {self.id} in state {self.state.value}")
        if not result_url:
            raise UploadStateError(f"Task {self.id} completed without a result URL")
        self.state = UploadState.DONE
        self.progress = 100
        self.result_url = result_url
        self.storage_path = storage_path

    def fail(self, message: str) -> None:
        if self.is_terminal:
            raise UploadStateError(f"Cannot fail task {self.id} in state {self.state.value}")
        self.state = UploadState.ERROR
        self.error_message = message or "Upload failed"

    def snapshot(self) -> UploadTaskSnapshot:
        return UploadTaskSnapshot(
            id=self.id,
            name=self.source.name,
            size=self.source.size,
            type=self.source.content_type,
            progress=self.progress,
            state=self.state,
            result_url=self.result_url,
            error_message=self.error_message,
        )

    def __repr__(self) -> str:
        return f"UploadTask(id={self.id!r}, name={self.source.name!r}, state={self.state.value})"
