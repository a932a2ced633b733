"""Pydantic models for CLI upload and dashboard API contracts."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection and camelCase wire names."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class UploadFormFields(StrictModel):
    """Text fields of the multipart upload form."""

    agent_name: str
    alt: str | None = None

    @field_validator("agent_name")
    @classmethod
    def _require_visible_agent_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Agent name is required.")
        return stripped

    @field_validator("alt")
    @classmethod
    def _blank_alt_to_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value


class UploadResponse(StrictModel):
    """Successful upload response consumed by the CLI."""

    image_id: str
    image_url: str
    markdown: str
    agent_name: str


class CliTokenIssueRequest(StrictModel):
    """Dashboard request body for issuing a token."""

    label: str | None = None


class CliTokenIssueResponse(StrictModel):
    """Freshly issued token; the plaintext is only ever shown here."""

    token: str
    token_id: UUID
    label: str


class CliTokenListItem(StrictModel):
    """One token entry without its hash."""

    token_id: UUID
    label: str
    token_preview: str
    created_at: datetime
    last_used_at: datetime | None = None
    revoked_at: datetime | None = None


class CliTokenListResponse(StrictModel):
    """Token listing for the signed-in user."""

    items: list[CliTokenListItem]


class ImageListItem(StrictModel):
    """One image entry with derived path and markdown."""

    image_id: str
    created_at: datetime
    agent_name: str
    original_file_name: str
    content_type: str
    byte_size: int
    markdown_alt: str
    image_path: str
    markdown: str


class ImageListResponse(StrictModel):
    """Image listing for the signed-in user."""

    items: list[ImageListItem]
