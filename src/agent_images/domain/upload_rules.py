"""Validation and presentation rules for declared image uploads."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Final

MAX_IMAGE_BYTES: Final[int] = 20 * 1024 * 1024
UPLOAD_INTENT_TTL: Final[timedelta] = timedelta(minutes=30)
DEFAULT_MARKDOWN_ALT: Final[str] = "Uploaded image"
IMAGE_CONTENT_TYPE_PREFIX: Final[str] = "image/"
PUBLIC_IMAGE_PATH_PREFIX: Final[str] = "/i/"

_EXTENSION_PATTERN = re.compile(r"\.[^.]+$")
_MARKDOWN_SPECIALS_PATTERN = re.compile(r"([\\\[\]])")
_UNSAFE_FILE_NAME_CHARS_PATTERN = re.compile(r"[^a-zA-Z0-9._-]")


class UploadValidationError(ValueError):
    """Raised when declared upload metadata violates admission rules."""


@dataclass(frozen=True)
class DeclaredUpload:
    """Caller-declared metadata for one pending image upload."""

    agent_name: str
    original_file_name: str
    content_type: str
    byte_size: int
    markdown_alt: str | None = None


@dataclass(frozen=True)
class ValidatedUpload:
    """Declared metadata after trimming, validation and alt-text resolution."""

    agent_name: str
    original_file_name: str
    content_type: str
    byte_size: int
    markdown_alt: str


def is_image_content_type(content_type: str) -> bool:
    """Return whether a MIME type names an image payload."""

    return content_type.startswith(IMAGE_CONTENT_TYPE_PREFIX)


def require_non_empty(value: str, *, label: str) -> str:
    """Trim one text field and reject blank values."""

    trimmed = value.strip()
    if not trimmed:
        raise UploadValidationError(f"{label} is required.")
    return trimmed


def default_alt_from_file_name(file_name: str) -> str:
    """Derive markdown alt text from a file name without its extension."""

    return _EXTENSION_PATTERN.sub("", file_name) or DEFAULT_MARKDOWN_ALT


def resolve_markdown_alt(*, markdown_alt: str | None, original_file_name: str) -> str:
    """Return trimmed caller alt text, falling back to the file-name derived default."""

    if markdown_alt is not None and markdown_alt.strip():
        return markdown_alt.strip()
    return default_alt_from_file_name(original_file_name)


def validate_declared_upload(declared: DeclaredUpload) -> ValidatedUpload:
    """Apply content-type, size and naming rules to one declared upload."""

    if not is_image_content_type(declared.content_type):
        raise UploadValidationError("Only image uploads are supported.")

    if declared.byte_size <= 0 or declared.byte_size > MAX_IMAGE_BYTES:
        raise UploadValidationError(
            f"Image size must be between 1 byte and {MAX_IMAGE_BYTES} bytes."
        )

    agent_name = require_non_empty(declared.agent_name, label="Agent name")
    original_file_name = require_non_empty(
        declared.original_file_name,
        label="Original file name",
    )
    return ValidatedUpload(
        agent_name=agent_name,
        original_file_name=original_file_name,
        content_type=declared.content_type,
        byte_size=declared.byte_size,
        markdown_alt=resolve_markdown_alt(
            markdown_alt=declared.markdown_alt,
            original_file_name=original_file_name,
        ),
    )


def escape_markdown_text(value: str) -> str:
    """Backslash-escape characters that would break markdown link text."""

    return _MARKDOWN_SPECIALS_PATTERN.sub(r"\\\1", value)


def build_markdown_image(*, alt_text: str, url: str) -> str:
    """Render one markdown image embed with escaped alt text."""

    return f"![{escape_markdown_text(alt_text)}]({url})"


def public_image_path(public_id: str) -> str:
    """Return the public URL path for one image identifier."""

    return f"{PUBLIC_IMAGE_PATH_PREFIX}{public_id}"


def sanitize_file_name(file_name: str) -> str:
    """Restrict a file name to characters safe for Content-Disposition headers."""

    return _UNSAFE_FILE_NAME_CHARS_PATTERN.sub("_", file_name)
