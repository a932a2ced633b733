"""SQLAlchemy adapter for the upload intent ledger."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agent_images.application.ports.image_repository_port import (
    ImageCreateInput,
    ImageRecord,
    PublicIdCollisionError,
)
from agent_images.application.ports.upload_intent_repository_port import (
    UploadIntentCreateInput,
    UploadIntentRecord,
    UploadIntentRepositoryPort,
)
from agent_images.infrastructure.db._rows import as_optional_utc, as_utc, as_uuid
from agent_images.infrastructure.db.image_repository import (
    build_image_insert,
    is_duplicate_public_id_error,
    to_image_record,
)
from agent_images.infrastructure.db.metadata import cli_tokens, upload_intents

logger = logging.getLogger(__name__)


class SqlAlchemyUploadIntentRepository(UploadIntentRepositoryPort):
    """Upload intent repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_intent(self, payload: UploadIntentCreateInput) -> UploadIntentRecord:
        """Insert one unconsumed intent row and return it."""

        statement = sa.insert(upload_intents).values(
            id=payload.intent_id,
            token_id=payload.token_id,
            user_id=payload.user_id,
            agent_name=payload.agent_name,
            original_file_name=payload.original_file_name,
            content_type=payload.content_type,
            byte_size=payload.byte_size,
            markdown_alt=payload.markdown_alt,
            created_at=payload.created_at,
        ).returning(*upload_intents.c)

        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()

        return _to_upload_intent_record(result.mappings().one())

    async def get_by_id(self, *, intent_id: UUID) -> UploadIntentRecord | None:
        """Return intent by id."""

        statement = sa.select(*upload_intents.c).where(upload_intents.c.id == intent_id).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_upload_intent_record(row)

    async def consume_and_publish(
        self,
        *,
        intent_id: UUID,
        token_id: UUID,
        image: ImageCreateInput,
        consumed_at: datetime,
    ) -> ImageRecord | None:
        """Compare-and-set the consumption stamp, append the image and touch the token."""

        consume_statement = (
            sa.update(upload_intents)
            .where(
                upload_intents.c.id == intent_id,
                upload_intents.c.consumed_at.is_(None),
            )
            .values(consumed_at=consumed_at)
        )
        touch_statement = (
            sa.update(cli_tokens)
            .where(cli_tokens.c.id == token_id)
            .values(last_used_at=consumed_at)
        )

        async with self._session_factory() as session:
            consumed = cast(CursorResult[Any], await session.execute(consume_statement))
            if int(consumed.rowcount or 0) != 1:
                await session.rollback()
                logger.info("upload_intent_consume_skipped intent_id=%s", intent_id)
                return None

            try:
                inserted = await session.execute(build_image_insert(image))
            except IntegrityError as error:
                await session.rollback()
                if is_duplicate_public_id_error(error):
                    raise PublicIdCollisionError(public_id=image.public_id) from error
                raise

            row = inserted.mappings().one()
            await session.execute(touch_statement)
            await session.commit()

        return to_image_record(row)


def _to_upload_intent_record(row: sa.RowMapping) -> UploadIntentRecord:
    return UploadIntentRecord(
        intent_id=as_uuid(row["id"]),
        token_id=as_uuid(row["token_id"]),
        user_id=cast(str, row["user_id"]),
        agent_name=cast(str, row["agent_name"]),
        original_file_name=cast(str, row["original_file_name"]),
        content_type=cast(str, row["content_type"]),
        byte_size=int(row["byte_size"]),
        markdown_alt=cast(str, row["markdown_alt"]),
        created_at=as_utc(row["created_at"]),
        consumed_at=as_optional_utc(row["consumed_at"]),
    )
