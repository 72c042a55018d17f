"""Upload checks performed before any decoding or pool access."""

from pathlib import PurePath

from sitescan.exceptions import ValidationError
from sitescan.utils.config import ValidationConfig


def file_extension(filename: str) -> str:
    """Lower-cased extension without the dot, or an empty string."""
    return PurePath(filename).suffix.lower().lstrip(".")


def validate_upload(
    filename: str, size: int, config: ValidationConfig | None = None
) -> None:
    """Reject uploads with a disallowed extension or a bad size.

    Raises:
        ValidationError: If the extension is not allowed, the file is
            empty, or it exceeds the size ceiling.
    """
    config = config or ValidationConfig()

    extension = file_extension(filename)
    if extension not in config.allowed_extensions:
        allowed = ", ".join(sorted(config.allowed_extensions))
        raise ValidationError(
            f"Unsupported format: {extension or 'none'!r} (allowed: {allowed})"
        )
    if size <= 0:
        raise ValidationError("File is empty")
    if size > config.max_file_size_bytes:
        limit_mb = config.max_file_size_bytes / (1024 * 1024)
        raise ValidationError(f"File size exceeds {limit_mb:.0f}MB limit")
