"""SQLAlchemy adapter for CLI bearer token persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Any, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agent_images.application.ports.cli_token_repository_port import (
    CliTokenCreateInput,
    CliTokenRecord,
    CliTokenRepositoryPort,
    TokenHashCollisionError,
)
from agent_images.infrastructure.db._rows import as_optional_utc, as_utc, as_uuid
from agent_images.infrastructure.db.metadata import cli_tokens


def _is_duplicate_token_hash_error(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "cli_tokens.token_hash" in message or "uq_cli_tokens_token_hash" in message


class SqlAlchemyCliTokenRepository(CliTokenRepositoryPort):
    """CLI token repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_token(self, payload: CliTokenCreateInput) -> CliTokenRecord:
        """Persist a token hash row and return the inserted token record."""

        statement = sa.insert(cli_tokens).values(
            id=payload.token_id,
            user_id=payload.user_id,
            label=payload.label,
            token_hash=payload.token_hash,
            token_preview=payload.token_preview,
            created_at=payload.created_at,
        ).returning(*cli_tokens.c)

        async with self._session_factory() as session:
            try:
                result = await session.execute(statement)
                await session.commit()
            except IntegrityError as error:
                await session.rollback()
                if _is_duplicate_token_hash_error(error):
                    raise TokenHashCollisionError("token hash already exists") from error
                raise

        row = result.mappings().one()
        return _to_cli_token_record(row)

    async def get_by_id(self, *, token_id: UUID) -> CliTokenRecord | None:
        """Return token by id, including revoked tokens."""

        statement = sa.select(*cli_tokens.c).where(cli_tokens.c.id == token_id).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_cli_token_record(row)

    async def get_by_hash(self, *, token_hash: str) -> CliTokenRecord | None:
        """Return token by hash, including revoked tokens."""

        statement = sa.select(*cli_tokens.c).where(
            cli_tokens.c.token_hash == token_hash,
        ).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_cli_token_record(row)

    async def list_for_user(self, *, user_id: str) -> list[CliTokenRecord]:
        """Return all tokens for one user ordered newest first."""

        statement = (
            sa.select(*cli_tokens.c)
            .where(cli_tokens.c.user_id == user_id)
            .order_by(cli_tokens.c.created_at.desc(), cli_tokens.c.id.desc())
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [_to_cli_token_record(row) for row in result.mappings().all()]

    async def mark_revoked(self, *, token_id: UUID, revoked_at: datetime) -> bool:
        """Stamp revocation once; later calls leave the first timestamp untouched."""

        statement = (
            sa.update(cli_tokens)
            .where(
                cli_tokens.c.id == token_id,
                cli_tokens.c.revoked_at.is_(None),
            )
            .values(revoked_at=revoked_at)
        )

        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0) == 1

    async def touch_last_used(self, *, token_id: UUID, used_at: datetime) -> None:
        """Stamp last usage time for one token."""

        statement = (
            sa.update(cli_tokens)
            .where(cli_tokens.c.id == token_id)
            .values(last_used_at=used_at)
        )

        async with self._session_factory() as session:
            await session.execute(statement)
            await session.commit()


def _to_cli_token_record(row: sa.RowMapping) -> CliTokenRecord:
    return CliTokenRecord(
        token_id=as_uuid(row["id"]),
        user_id=cast(str, row["user_id"]),
        label=cast(str, row["label"]),
        token_hash=cast(str, row["token_hash"]),
        token_preview=cast(str, row["token_preview"]),
        created_at=as_utc(row["created_at"]),
        last_used_at=as_optional_utc(row["last_used_at"]),
        revoked_at=as_optional_utc(row["revoked_at"]),
    )
