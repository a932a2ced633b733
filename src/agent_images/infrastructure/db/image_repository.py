"""SQLAlchemy adapter for the append-only image catalog."""

from __future__ import annotations

from typing import cast

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agent_images.application.ports.image_repository_port import (
    ImageCreateInput,
    ImageRecord,
    ImageRepositoryPort,
    PublicIdCollisionError,
)
from agent_images.infrastructure.db._rows import as_utc, as_uuid
from agent_images.infrastructure.db.metadata import images


def is_duplicate_public_id_error(error: IntegrityError) -> bool:
    """Return whether an integrity error comes from the public id unique constraint."""

    message = str(error.orig).lower()
    return "images.public_id" in message or "uq_images_public_id" in message


def build_image_insert(payload: ImageCreateInput) -> sa.Insert:
    """Build the insert statement appending one image row."""

    return sa.insert(images).values(
        public_id=payload.public_id,
        blob_id=payload.blob_id,
        intent_id=payload.intent_id,
        owner_user_id=payload.owner_user_id,
        agent_name=payload.agent_name,
        original_file_name=payload.original_file_name,
        content_type=payload.content_type,
        byte_size=payload.byte_size,
        markdown_alt=payload.markdown_alt,
        created_at=payload.created_at,
    ).returning(*images.c)


class SqlAlchemyImageRepository(ImageRepositoryPort):
    """Image repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert_image(self, payload: ImageCreateInput) -> ImageRecord:
        """Append one image row and return it."""

        async with self._session_factory() as session:
            try:
                result = await session.execute(build_image_insert(payload))
                await session.commit()
            except IntegrityError as error:
                await session.rollback()
                if is_duplicate_public_id_error(error):
                    raise PublicIdCollisionError(public_id=payload.public_id) from error
                raise

        return to_image_record(result.mappings().one())

    async def get_by_public_id(self, *, public_id: str) -> ImageRecord | None:
        """Return image by public identifier."""

        statement = sa.select(*images.c).where(images.c.public_id == public_id).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return to_image_record(row)

    async def list_for_user(self, *, owner_user_id: str, limit: int) -> list[ImageRecord]:
        """Return newest-first images for one owner."""

        statement = (
            sa.select(*images.c)
            .where(images.c.owner_user_id == owner_user_id)
            .order_by(images.c.created_at.desc(), images.c.id.desc())
            .limit(limit)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [to_image_record(row) for row in result.mappings().all()]


def to_image_record(row: sa.RowMapping) -> ImageRecord:
    """Map one images row into the port record."""

    raw_intent_id = row["intent_id"]
    return ImageRecord(
        public_id=cast(str, row["public_id"]),
        blob_id=cast(str, row["blob_id"]),
        owner_user_id=cast(str, row["owner_user_id"]),
        agent_name=cast(str, row["agent_name"]),
        original_file_name=cast(str, row["original_file_name"]),
        content_type=cast(str, row["content_type"]),
        byte_size=int(row["byte_size"]),
        markdown_alt=cast(str, row["markdown_alt"]),
        created_at=as_utc(row["created_at"]),
        intent_id=None if raw_intent_id is None else as_uuid(raw_intent_id),
    )
