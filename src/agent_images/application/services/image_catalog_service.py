"""Application service for the append-only public image catalog."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TypeVar
from uuid import UUID, uuid4

from agent_images.application.ports.image_repository_port import (
    ImageCreateInput,
    ImageRecord,
    ImageRepositoryPort,
    PublicIdCollisionError,
)
from agent_images.domain.upload_rules import build_markdown_image, public_image_path

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 200
MAX_PUBLIC_ID_ATTEMPTS = 5

_T = TypeVar("_T")


@dataclass(frozen=True)
class ImageSummary:
    """Dashboard listing entry with derived public path and markdown."""

    public_id: str
    created_at: datetime
    agent_name: str
    original_file_name: str
    content_type: str
    byte_size: int
    markdown_alt: str
    image_path: str
    markdown: str


def generate_public_image_id() -> str:
    """Return a new opaque public image identifier."""

    return str(uuid4())


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


async def with_fresh_public_id(
    attempt: Callable[[str], Awaitable[_T]],
    *,
    id_factory: Callable[[], str],
    max_attempts: int = MAX_PUBLIC_ID_ATTEMPTS,
) -> _T:
    """Run `attempt` with new public ids until it stops colliding."""

    last_error: PublicIdCollisionError | None = None
    for _ in range(max_attempts):
        public_id = id_factory()
        try:
            return await attempt(public_id)
        except PublicIdCollisionError as error:
            logger.warning("image_public_id_collision public_id=%s", error.public_id)
            last_error = error
    assert last_error is not None
    raise last_error


def to_image_summary(record: ImageRecord) -> ImageSummary:
    """Project one image record into its dashboard summary."""

    path = public_image_path(record.public_id)
    return ImageSummary(
        public_id=record.public_id,
        created_at=record.created_at,
        agent_name=record.agent_name,
        original_file_name=record.original_file_name,
        content_type=record.content_type,
        byte_size=record.byte_size,
        markdown_alt=record.markdown_alt,
        image_path=path,
        markdown=build_markdown_image(alt_text=record.markdown_alt, url=path),
    )


class ImageCatalogService:
    """Append, list and look up immutable image records."""

    def __init__(
        self,
        *,
        images: ImageRepositoryPort,
        id_factory: Callable[[], str] | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._images = images
        self._id_factory = id_factory or generate_public_image_id
        self._now = now or _utc_now

    async def insert(
        self,
        *,
        owner_user_id: str,
        blob_id: str,
        agent_name: str,
        original_file_name: str,
        content_type: str,
        byte_size: int,
        markdown_alt: str,
        intent_id: UUID | None = None,
    ) -> str:
        """Append one image and return its new public identifier.

        Intent finalization appends inside its consume transaction instead; this
        entry point serves records with no originating intent.
        """

        created_at = self._now()

        async def _insert(public_id: str) -> ImageRecord:
            return await self._images.insert_image(
                ImageCreateInput(
                    public_id=public_id,
                    blob_id=blob_id,
                    owner_user_id=owner_user_id,
                    agent_name=agent_name,
                    original_file_name=original_file_name,
                    content_type=content_type,
                    byte_size=byte_size,
                    markdown_alt=markdown_alt,
                    created_at=created_at,
                    intent_id=intent_id,
                )
            )

        record = await with_fresh_public_id(_insert, id_factory=self._id_factory)
        return record.public_id

    async def list_for_user(
        self,
        *,
        user_id: str,
        limit: int = MAX_LIST_LIMIT,
    ) -> list[ImageSummary]:
        """Return newest-first image summaries capped at the listing page size."""

        bounded_limit = max(1, min(limit, MAX_LIST_LIMIT))
        records = await self._images.list_for_user(owner_user_id=user_id, limit=bounded_limit)
        return [to_image_summary(record) for record in records]

    async def get_by_public_id(self, *, public_id: str) -> ImageRecord | None:
        """Return one image by public identifier without any authentication."""

        return await self._images.get_by_public_id(public_id=public_id)
