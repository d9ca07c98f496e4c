"""EduCMS gateway command line.

Commands:
    health           - Check the active backend
    storage-status   - Check that every storage bucket is ready
    upload-document  - Upload a file and register it in the document library
    announce         - Create an announcement with attachments
    export           - Write a CSV report
    init-config      - Write a default storage.yaml
    validate-config  - Validate a storage.yaml
"""

import asyncio
import logging
from pathlib import Path

import structlog
import typer
import yaml
from pydantic import ValidationError as PydanticValidationError
from tqdm import tqdm

from educms.config.loader import get_default_storage_config, load_storage_config_file
from educms.errors import EduCMSError, OrphanedUploadsError
from educms.models.announcement import AnnouncementCategory, AnnouncementPriority
from educms.models.document import DocumentCategory
from educms.models.storage import StorageBucket
from educms.models.upload import UploadTask
from educms.normalize.gateway import create_gateway
from educms.reports import REPORT_FILENAMES, build_report
from educms.settings import Settings, get_settings
from educms.storage import SourceFile, format_file_size, get_storage
from educms.uploads.coordinator import (
    SubmissionResult,
    UploadCoordinator,
    merge_attachments,
    merge_document_file,
)

app = typer.Typer(
    name="educms",
    help="Backend gateway and upload tools for EduCMS",
    add_completion=False,
)


def setup_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Output format ("json" or "console")
    """
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    logging.basicConfig(format="%(message)s")
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _load_settings() -> Settings:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    return settings


def _fail(error: EduCMSError) -> None:
    typer.echo(f"Error: {error.user_message}", err=True)
    if isinstance(error, OrphanedUploadsError):
        for path in error.orphaned:
            typer.echo(f"  not attached: {path}", err=True)
    raise typer.Exit(1)


class _ProgressBars:
    """One tqdm bar per upload task."""

    def __init__(self) -> None:
        self.bars: dict[str, tqdm] = {}

    def __call__(self, task: UploadTask) -> None:
        bar = self.bars.get(task.id)
        if bar is None:
            bar = tqdm(total=100, desc=task.source.name, unit="%")
            self.bars[task.id] = bar
        bar.update(task.progress - bar.n)

    def close(self) -> None:
        for bar in self.bars.values():
            bar.close()


def _report_submission(result: SubmissionResult) -> None:
    if result.ok:
        entity_id = getattr(result.entity, "id", None)
        typer.echo(f"Saved {entity_id} with {len(result.attachments)} file(s)")
        return
    typer.echo(f"Upload {result.status.replace('_', ' ')}: {result.error}", err=True)
    raise typer.Exit(1)


@app.command()
def health() -> None:
    """Check that the active backend is reachable."""
    settings = _load_settings()

    async def run():
        async with create_gateway(settings) as gateway:
            return await gateway.health_check()

    status = asyncio.run(run())
    typer.echo(f"Backend: {status.backend}")
    typer.echo(f"Status:  {status.status}")
    for key, value in status.details.items():
        typer.echo(f"  {key}: {value}")
    if status.status != "healthy":
        raise typer.Exit(1)


@app.command("storage-status")
def storage_status() -> None:
    """Check that every configured storage bucket is accessible.

    Prints setup instructions for the buckets that are not ready.
    """
    settings = _load_settings()
    storage = get_storage(settings)

    async def run():
        try:
            return await storage.get_storage_status()
        finally:
            await storage.close()

    status = asyncio.run(run())
    for bucket, check in status.buckets.items():
        mark = "ok" if check.exists else "MISSING"
        typer.echo(f"{bucket:<15} {mark}")
        if check.error:
            typer.echo(f"  {check.error}")

    if status.all_ready:
        typer.echo("\nAll storage buckets are ready")
        return

    typer.echo("\n--- Setup Instructions ---")
    for instructions in storage.get_bucket_setup_instructions():
        if status.buckets[instructions.bucket].exists:
            continue
        visibility = "public" if instructions.is_public else "private"
        typer.echo(f"{instructions.bucket} ({visibility}): {instructions.description}")
        for policy in instructions.policies:
            typer.echo(f"  - {policy}")
    raise typer.Exit(1)


@app.command("upload-document")
def upload_document(
    file_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    uploaded_by: str = typer.Option(..., "--uploaded-by", "-u", help="Uploader user id"),
    name: str = typer.Option(None, "--name", "-n", help="Display name (defaults to file name)"),
    description: str = typer.Option(None, "--description", "-d", help="Document description"),
    category: DocumentCategory = typer.Option(
        DocumentCategory.GENERAL, "--category", help="Document category"
    ),
    public: bool = typer.Option(False, "--public", help="Visible to every user"),
) -> None:
    """Upload a file and create its document library record.

    Examples:
        educms upload-document handbook.pdf -u 5b1c... --category policy --public
    """
    settings = _load_settings()
    source = SourceFile.from_path(file_path)
    payload = {
        "name": name,
        "description": description,
        "category": category,
        "uploaded_by": uploaded_by,
        "is_public": public,
    }

    async def run() -> SubmissionResult:
        storage = get_storage(settings)
        bars = _ProgressBars()
        coordinator = UploadCoordinator(
            storage,
            bucket=StorageBucket.DOCUMENTS.value,
            folder=uploaded_by,
            rollback_on_failure=settings.rollback_on_entity_failure,
            on_progress=bars,
        )
        coordinator.add_files([source])
        try:
            async with create_gateway(settings) as gateway:
                return await coordinator.submit_create(
                    gateway.documents, payload, merge=merge_document_file
                )
        finally:
            bars.close()
            await storage.close()

    try:
        result = asyncio.run(run())
    except EduCMSError as e:
        _fail(e)
    _report_submission(result)


@app.command()
def announce(
    title: str = typer.Argument(..., help="Announcement title"),
    content: str = typer.Option(..., "--content", "-c", help="Announcement text"),
    author_id: str = typer.Option(..., "--author-id", "-a", help="Author user id"),
    category: AnnouncementCategory = typer.Option(
        AnnouncementCategory.GENERAL, "--category", help="Announcement category"
    ),
    priority: AnnouncementPriority = typer.Option(
        AnnouncementPriority.NORMAL, "--priority", help="Announcement priority"
    ),
    publish: bool = typer.Option(False, "--publish", help="Publish immediately"),
    attach: list[Path] = typer.Option(
        None,
        "--attach",
        exists=True,
        dir_okay=False,
        help="File to attach (repeat for several)",
    ),
) -> None:
    """Create an announcement, uploading its attachments first.

    Attachments upload one at a time; the announcement is only created when
    all of them succeed.

    Examples:
        educms announce "Sports day" -c "Friday 9am" -a 5b1c... --attach map.pdf
    """
    settings = _load_settings()
    sources = [SourceFile.from_path(path) for path in attach or []]
    payload = {
        "title": title,
        "content": content,
        "author_id": author_id,
        "category": category,
        "priority": priority,
        "is_published": publish,
    }

    async def run() -> SubmissionResult:
        storage = get_storage(settings)
        bars = _ProgressBars()
        coordinator = UploadCoordinator(
            storage,
            bucket=StorageBucket.ANNOUNCEMENTS.value,
            folder=author_id,
            rollback_on_failure=settings.rollback_on_entity_failure,
            on_progress=bars,
        )
        coordinator.add_files(sources)
        try:
            async with create_gateway(settings) as gateway:
                return await coordinator.submit_create(
                    gateway.announcements, payload, merge=merge_attachments
                )
        finally:
            bars.close()
            await storage.close()

    try:
        result = asyncio.run(run())
    except EduCMSError as e:
        _fail(e)
    _report_submission(result)


@app.command()
def export(
    report: str = typer.Argument(..., help=f"Report type: {', '.join(REPORT_FILENAMES)}"),
    output_dir: Path = typer.Option(
        Path("."), "--output-dir", "-o", help="Directory to write the CSV file"
    ),
) -> None:
    """Export a CSV report.

    Examples:
        educms export students
        educms export summary -o reports/
    """
    settings = _load_settings()

    async def run() -> tuple[str, str]:
        async with create_gateway(settings) as gateway:
            return await build_report(gateway, report)

    try:
        filename, content = asyncio.run(run())
    except EduCMSError as e:
        _fail(e)

    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / filename
    output_path.write_text(content, encoding="utf-8")
    typer.echo(f"Report written to: {output_path}")


@app.command("init-config")
def init_config(
    output_path: Path = typer.Option(
        Path("config/storage.yaml"),
        "--output",
        "-o",
        help="Path to write configuration file",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing file",
    ),
) -> None:
    """Generate a default storage configuration file.

    Creates a storage.yaml with the standard avatars, documents and
    announcements buckets that you can customize.
    """
    if output_path.exists() and not force:
        typer.echo(f"File already exists: {output_path}")
        typer.echo("Use --force to overwrite")
        raise typer.Exit(1)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(get_default_storage_config(), f, default_flow_style=False, sort_keys=False)

    typer.echo(f"Configuration written to: {output_path}")
    typer.echo("Edit the file to customize bucket limits for your environment.")


@app.command("validate-config")
def validate_config(
    config_path: Path = typer.Option(
        Path("config/storage.yaml"),
        "--config",
        "-c",
        help="Path to configuration file",
    ),
) -> None:
    """Validate a storage configuration file."""
    try:
        config = load_storage_config_file(config_path)
    except FileNotFoundError as e:
        typer.echo(f"Configuration file not found: {e}")
        raise typer.Exit(1) from None
    except (yaml.YAMLError, PydanticValidationError, TypeError) as e:
        typer.echo(f"Configuration error: {e}")
        raise typer.Exit(1) from None

    typer.echo("Configuration is valid")
    for bucket, rules in config.buckets.items():
        visibility = "public" if rules.public else "private"
        typer.echo(
            f"  {bucket}: {visibility}, max {format_file_size(rules.max_size)}, "
            f"{len(rules.allowed_types) or 'any'} type(s)"
        )
    typer.echo(f"  Max files per upload: {config.upload.max_files}")


if __name__ == "__main__":
    app()
