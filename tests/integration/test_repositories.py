from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from alembic.config import Config

from alembic import command
from agent_images.application.ports.cli_token_repository_port import (
    CliTokenCreateInput,
    TokenHashCollisionError,
)
from agent_images.application.ports.image_repository_port import (
    ImageCreateInput,
    PublicIdCollisionError,
)
from agent_images.application.ports.upload_intent_repository_port import (
    UploadIntentCreateInput,
)
from agent_images.infrastructure.db.cli_token_repository import SqlAlchemyCliTokenRepository
from agent_images.infrastructure.db.image_repository import SqlAlchemyImageRepository
from agent_images.infrastructure.db.session import create_session_factory
from agent_images.infrastructure.db.upload_intent_repository import (
    SqlAlchemyUploadIntentRepository,
)

NOW = datetime(2026, 7, 1, 10, 0, tzinfo=UTC)


def _upgrade_head(tmp_path: Path, filename: str) -> str:
    db_path = tmp_path / filename
    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", f"sqlite+pysqlite:///{db_path}")
    command.upgrade(alembic_config, "head")
    return f"sqlite+aiosqlite:///{db_path}"


def _token_input(*, user_id: str = "user-1", token_hash: str = "hash-1") -> CliTokenCreateInput:
    return CliTokenCreateInput(
        token_id=uuid4(),
        user_id=user_id,
        label="laptop",
        token_hash=token_hash,
        token_preview="ghimg_abcd...wxyz",
        created_at=NOW,
    )


def _intent_input(*, token_id: UUID) -> UploadIntentCreateInput:
    return UploadIntentCreateInput(
        intent_id=uuid4(),
        token_id=token_id,
        user_id="user-1",
        agent_name="codex-agent",
        original_file_name="shot.png",
        content_type="image/png",
        byte_size=4,
        markdown_alt="shot",
        created_at=NOW,
    )


def _image_input(*, public_id: str, intent_id: UUID | None = None) -> ImageCreateInput:
    return ImageCreateInput(
        public_id=public_id,
        blob_id="blob-1",
        owner_user_id="user-1",
        agent_name="codex-agent",
        original_file_name="shot.png",
        content_type="image/png",
        byte_size=4,
        markdown_alt="shot",
        created_at=NOW,
        intent_id=intent_id,
    )


@pytest.mark.asyncio
async def test_cli_token_repository_round_trip_and_single_revocation(tmp_path: Path) -> None:
    session_factory = create_session_factory(_upgrade_head(tmp_path, "tokens.db"))
    repository = SqlAlchemyCliTokenRepository(session_factory)

    created = await repository.create_token(_token_input())
    by_hash = await repository.get_by_hash(token_hash="hash-1")
    first = await repository.mark_revoked(token_id=created.token_id, revoked_at=NOW)
    second = await repository.mark_revoked(
        token_id=created.token_id,
        revoked_at=NOW + timedelta(hours=1),
    )
    reloaded = await repository.get_by_id(token_id=created.token_id)

    assert by_hash is not None
    assert by_hash.token_id == created.token_id
    assert by_hash.created_at == NOW
    assert (first, second) == (True, False)
    assert reloaded is not None
    assert reloaded.revoked_at == NOW


@pytest.mark.asyncio
async def test_cli_token_repository_rejects_duplicate_hash(tmp_path: Path) -> None:
    session_factory = create_session_factory(_upgrade_head(tmp_path, "dup_tokens.db"))
    repository = SqlAlchemyCliTokenRepository(session_factory)
    await repository.create_token(_token_input())

    with pytest.raises(TokenHashCollisionError):
        await repository.create_token(_token_input())


@pytest.mark.asyncio
async def test_cli_token_listing_is_newest_first_per_user(tmp_path: Path) -> None:
    session_factory = create_session_factory(_upgrade_head(tmp_path, "list_tokens.db"))
    repository = SqlAlchemyCliTokenRepository(session_factory)
    older = await repository.create_token(_token_input(token_hash="h-old"))
    newer_input = _token_input(token_hash="h-new")
    newer = await repository.create_token(
        CliTokenCreateInput(
            token_id=newer_input.token_id,
            user_id=newer_input.user_id,
            label=newer_input.label,
            token_hash=newer_input.token_hash,
            token_preview=newer_input.token_preview,
            created_at=NOW + timedelta(minutes=1),
        )
    )
    await repository.create_token(_token_input(user_id="user-2", token_hash="h-other"))

    listed = await repository.list_for_user(user_id="user-1")

    assert [record.token_id for record in listed] == [newer.token_id, older.token_id]


@pytest.mark.asyncio
async def test_image_repository_rejects_reused_public_id(tmp_path: Path) -> None:
    session_factory = create_session_factory(_upgrade_head(tmp_path, "images.db"))
    repository = SqlAlchemyImageRepository(session_factory)
    await repository.insert_image(_image_input(public_id="img-1"))

    with pytest.raises(PublicIdCollisionError):
        await repository.insert_image(_image_input(public_id="img-1"))

    found = await repository.get_by_public_id(public_id="img-1")
    assert found is not None
    assert found.intent_id is None
    assert await repository.get_by_public_id(public_id="img-2") is None


@pytest.mark.asyncio
async def test_consume_and_publish_is_single_use(tmp_path: Path) -> None:
    session_factory = create_session_factory(_upgrade_head(tmp_path, "consume.db"))
    tokens = SqlAlchemyCliTokenRepository(session_factory)
    intents = SqlAlchemyUploadIntentRepository(session_factory)
    images = SqlAlchemyImageRepository(session_factory)
    token = await tokens.create_token(_token_input())
    intent = await intents.create_intent(_intent_input(token_id=token.token_id))
    consumed_at = NOW + timedelta(minutes=2)

    published = await intents.consume_and_publish(
        intent_id=intent.intent_id,
        token_id=token.token_id,
        image=_image_input(public_id="img-1", intent_id=intent.intent_id),
        consumed_at=consumed_at,
    )
    again = await intents.consume_and_publish(
        intent_id=intent.intent_id,
        token_id=token.token_id,
        image=_image_input(public_id="img-2", intent_id=intent.intent_id),
        consumed_at=consumed_at,
    )

    assert published is not None
    assert published.intent_id == intent.intent_id
    assert again is None
    reloaded_intent = await intents.get_by_id(intent_id=intent.intent_id)
    assert reloaded_intent is not None
    assert reloaded_intent.consumed_at == consumed_at
    reloaded_token = await tokens.get_by_id(token_id=token.token_id)
    assert reloaded_token is not None
    assert reloaded_token.last_used_at == consumed_at
    assert await images.get_by_public_id(public_id="img-2") is None


@pytest.mark.asyncio
async def test_public_id_collision_leaves_intent_unconsumed(tmp_path: Path) -> None:
    session_factory = create_session_factory(_upgrade_head(tmp_path, "collision.db"))
    tokens = SqlAlchemyCliTokenRepository(session_factory)
    intents = SqlAlchemyUploadIntentRepository(session_factory)
    images = SqlAlchemyImageRepository(session_factory)
    token = await tokens.create_token(_token_input())
    intent = await intents.create_intent(_intent_input(token_id=token.token_id))
    await images.insert_image(_image_input(public_id="taken"))

    with pytest.raises(PublicIdCollisionError):
        await intents.consume_and_publish(
            intent_id=intent.intent_id,
            token_id=token.token_id,
            image=_image_input(public_id="taken", intent_id=intent.intent_id),
            consumed_at=NOW,
        )

    reloaded = await intents.get_by_id(intent_id=intent.intent_id)
    assert reloaded is not None
    assert reloaded.consumed_at is None


@pytest.mark.asyncio
async def test_concurrent_consume_yields_exactly_one_image(tmp_path: Path) -> None:
    session_factory = create_session_factory(_upgrade_head(tmp_path, "race.db"))
    tokens = SqlAlchemyCliTokenRepository(session_factory)
    intents = SqlAlchemyUploadIntentRepository(session_factory)
    images = SqlAlchemyImageRepository(session_factory)
    token = await tokens.create_token(_token_input())
    intent = await intents.create_intent(_intent_input(token_id=token.token_id))

    results = await asyncio.gather(
        *[
            intents.consume_and_publish(
                intent_id=intent.intent_id,
                token_id=token.token_id,
                image=_image_input(public_id=f"img-{index}", intent_id=intent.intent_id),
                consumed_at=NOW,
            )
            for index in range(4)
        ]
    )

    published = [result for result in results if result is not None]
    assert len(published) == 1
    listed = await images.list_for_user(owner_user_id="user-1", limit=10)
    assert [image.public_id for image in listed] == [published[0].public_id]
