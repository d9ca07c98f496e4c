"""Client-side file validation."""

from collections.abc import Sequence

from educms.models.storage import ValidationResult
from educms.storage.source import SourceFile

DEFAULT_MAX_SIZE = 50 * 1024 * 1024

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def format_file_size(size: int) -> str:
    """Format a byte count for display (e.g. ``"2.5 MB"``)."""
    if size <= 0:
        return "0 Bytes"
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(_SIZE_UNITS) - 1:
        exponent += 1
    value = round(size / 1024**exponent, 2)
    return f"{value:g} {_SIZE_UNITS[exponent]}"


def type_allowed(content_type: str, allowed_types: Sequence[str]) -> bool:
    """Check a MIME type against an allow-list.

    Entries match exactly, or by prefix when they end in ``/*``
    (``image/*`` accepts ``image/png``). An empty list allows everything.
    """
    if not allowed_types:
        return True
    for pattern in allowed_types:
        if pattern.endswith("/*"):
            if content_type.startswith(pattern[:-1]):
                return True
        elif content_type == pattern:
            return True
    return False


def validate_file(
    file: SourceFile,
    max_size: int = DEFAULT_MAX_SIZE,
    allowed_types: Sequence[str] = (),
) -> ValidationResult:
    """Validate a file before upload. Never touches the network."""
    if file.size > max_size:
        return ValidationResult(
            valid=False,
            error=f"File size exceeds {format_file_size(max_size)} limit",
        )

    if not type_allowed(file.content_type, allowed_types):
        return ValidationResult(
            valid=False,
            error=f"File type {file.content_type} is not allowed",
        )

    return ValidationResult(valid=True)
