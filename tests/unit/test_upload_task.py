"""Unit tests for the upload task state machine."""

import pytest

from educms.models.upload import UploadState, UploadStateError, UploadTask
from educms.storage.source import SourceFile


@pytest.fixture
def task() -> UploadTask:
    return UploadTask(SourceFile.from_bytes("a.pdf", b"%PDF"))


class TestUploadTask:
    """Tests for UploadTask transitions."""

    def test_happy_path(self, task):
        """Test queued -> uploading -> done sets the result URL."""
        task.start()
        task.report_progress(40)
        task.complete("documents/a.pdf", "a.pdf")

        assert task.state is UploadState.DONE
        assert task.progress == 100
        assert task.result_url == "documents/a.pdf"
        assert task.error_message is None

    def test_progress_never_decreases(self, task):
        """Test a lower progress value is ignored."""
        task.start()
        task.report_progress(60)
        task.report_progress(30)
        task.report_progress(250)

        assert task.progress == 100

    def test_progress_ignored_while_queued(self, task):
        """Test progress is only recorded during the transfer."""
        task.report_progress(50)
        assert task.progress == 0

    def test_fail_keeps_message(self, task):
        """Test a failed task records its error and no URL."""
        task.start()
        task.fail("")

        assert task.state is UploadState.ERROR
        assert task.error_message == "Upload failed"
        assert task.result_url is None

    def test_terminal_states_are_final(self, task):
        """Test done and error tasks cannot change state."""
        task.start()
        task.complete("documents/a.pdf")

        with pytest.raises(UploadStateError):
            task.fail("late")
        with pytest.raises(UploadStateError):
            task.start()

    def test_complete_requires_url(self, task):
        """Test a task cannot finish without a result URL."""
        task.start()
        with pytest.raises(UploadStateError):
            task.complete("")

    def test_cannot_complete_from_queued(self, task):
        """Test a task must start before it completes."""
        with pytest.raises(UploadStateError):
            task.complete("documents/a.pdf")

    def test_snapshot(self, task):
        """Test snapshots describe the file and state."""
        snapshot = task.snapshot()

        assert snapshot.name == "a.pdf"
        assert snapshot.size == 4
        assert snapshot.state is UploadState.QUEUED
