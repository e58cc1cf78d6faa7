"""
File Validation Utilities Module for MediaShelf

Checks applied to multipart uploads before any bytes are sent to Cloudinary:
- Extension whitelisting per media kind (video or image)
- Size limits from settings
- Filename sanitization for the name forwarded to the media service

Content inspection is left to Cloudinary, which rejects files it cannot decode.
"""

import re

from pathlib import Path

from fastapi import HTTPException, status

from mediashelf.utils.formatting import format_size


MAX_FILENAME_LENGTH = 255


def get_file_extension(filename: str | None) -> str:
    """Lowercase extension with dot (e.g. ".mp4"), or an empty string."""
    if not filename:
        return ""
    return Path(filename.replace("\\", "/")).suffix.lower()


def validate_file_extension(
    filename: str | None, allowed_extensions: list[str] | set[str]
) -> tuple[bool, str | None]:
    """
    Check a filename's extension against a whitelist.

    Returns:
        Tuple of (is_valid, error_message)

    Example:
        >>> validate_file_extension("clip.MP4", {".mp4"})
        (True, None)
        >>> validate_file_extension("archive.zip", {".mp4"})
        (False, "File type '.zip' is not supported. Allowed types: .mp4")
    """
    if not filename:
        return False, "Filename is empty or None"

    extension = get_file_extension(filename)
    if not extension:
        return False, "File has no extension. Please provide a file with a valid extension."

    if extension not in allowed_extensions:
        allowed = ", ".join(sorted(allowed_extensions))
        return False, f"File type '{extension}' is not supported. Allowed types: {allowed}"

    return True, None


def validate_file_size(file_size: int, max_size: int) -> tuple[bool, str | None]:
    """
    Returns:
        Tuple of (is_valid, error_message); empty files are rejected.
    """
    if file_size <= 0:
        return False, "File is empty"
    if file_size > max_size:
        return (
            False,
            f"File size ({format_size(file_size)}) exceeds maximum allowed size ({format_size(max_size)})",
        )
    return True, None


def sanitize_filename(filename: str | None) -> str:
    """
    Make a client-supplied filename safe to forward.

    Strips path components and control characters, replaces whitespace with
    underscores, drops anything outside ``[\\w\\-.]`` and keeps the extension.

    Example:
        >>> sanitize_filename("../../my clip (final).mp4")
        'my_clip_final.mp4'
    """
    if not filename:
        return "unnamed_file"

    path = Path(filename.replace("\\", "/"))
    extension = path.suffix.lower()
    name = path.stem

    name = re.sub(r"[\x00-\x1f\x7f]", "", name)
    name = re.sub(r"\s+", "_", name)
    name = re.sub(r"[^\w\-.]", "", name)
    name = re.sub(r"\.\.+", ".", name)
    name = re.sub(r"_+", "_", name).strip("_-.")

    if not name:
        name = "unnamed_file"

    max_name_length = MAX_FILENAME_LENGTH - len(extension)
    return f"{name[:max_name_length]}{extension}"


def raise_file_too_large_error(message: str) -> None:
    """
    Raises:
        HTTPException: Always, with 413 Payload Too Large.
    """
    raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=message)


def raise_unsupported_type_error(message: str) -> None:
    """
    Raises:
        HTTPException: Always, with 415 Unsupported Media Type.
    """
    raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=message)
