"""Port for upload intent ledger persistence and atomic finalize."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from agent_images.application.ports.image_repository_port import ImageCreateInput, ImageRecord


@dataclass(frozen=True)
class UploadIntentCreateInput:
    """Input payload for inserting one upload intent."""

    intent_id: UUID
    token_id: UUID
    user_id: str
    agent_name: str
    original_file_name: str
    content_type: str
    byte_size: int
    markdown_alt: str
    created_at: datetime


@dataclass(frozen=True)
class UploadIntentRecord:
    """Persisted upload intent model."""

    intent_id: UUID
    token_id: UUID
    user_id: str
    agent_name: str
    original_file_name: str
    content_type: str
    byte_size: int
    markdown_alt: str
    created_at: datetime
    consumed_at: datetime | None

    @property
    def is_consumed(self) -> bool:
        """Return whether the intent was already promoted to an image."""

        return self.consumed_at is not None


class UploadIntentRepositoryPort(Protocol):
    """Upload intent ledger persistence contract."""

    async def create_intent(self, payload: UploadIntentCreateInput) -> UploadIntentRecord:
        """Persist a new unconsumed intent."""

    async def get_by_id(self, *, intent_id: UUID) -> UploadIntentRecord | None:
        """Return intent by id or None."""

    async def consume_and_publish(
        self,
        *,
        intent_id: UUID,
        token_id: UUID,
        image: ImageCreateInput,
        consumed_at: datetime,
    ) -> ImageRecord | None:
        """Atomically consume one unconsumed intent, append its image and touch the token.

        Returns None without side effects when the intent was already consumed.
        Raises PublicIdCollisionError without side effects when the image id is taken.
        """
