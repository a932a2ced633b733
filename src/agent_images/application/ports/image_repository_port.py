"""Port for append-only image catalog persistence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID


@dataclass(frozen=True)
class ImageCreateInput:
    """Input payload for appending one public image record."""

    public_id: str
    blob_id: str
    owner_user_id: str
    agent_name: str
    original_file_name: str
    content_type: str
    byte_size: int
    markdown_alt: str
    created_at: datetime
    intent_id: UUID | None = None


@dataclass(frozen=True)
class ImageRecord:
    """Persisted immutable image model."""

    public_id: str
    blob_id: str
    owner_user_id: str
    agent_name: str
    original_file_name: str
    content_type: str
    byte_size: int
    markdown_alt: str
    created_at: datetime
    intent_id: UUID | None


class ImageRepositoryPort(Protocol):
    """Image catalog persistence contract."""

    async def insert_image(self, payload: ImageCreateInput) -> ImageRecord:
        """Append one image; raise PublicIdCollisionError on duplicate public id."""

    async def get_by_public_id(self, *, public_id: str) -> ImageRecord | None:
        """Return image by public identifier or None."""

    async def list_for_user(self, *, owner_user_id: str, limit: int) -> list[ImageRecord]:
        """Return up to `limit` images for one owner, most recent first."""


class PublicIdCollisionError(ValueError):
    """Raised when a generated public image id is already taken."""

    def __init__(self, *, public_id: str) -> None:
        super().__init__(f"public image id already exists: {public_id}")
        self.public_id = public_id
