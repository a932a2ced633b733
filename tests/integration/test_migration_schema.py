from __future__ import annotations

from pathlib import Path

import sqlalchemy as sa
from alembic.config import Config

from alembic import command


def _upgrade_head(tmp_path: Path) -> str:
    db_path = tmp_path / "schema.db"
    database_url = f"sqlite+pysqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", database_url)

    command.upgrade(alembic_config, "head")
    return database_url


def test_migration_creates_required_tables(tmp_path: Path) -> None:
    engine = sa.create_engine(_upgrade_head(tmp_path))

    table_names = set(sa.inspect(engine).get_table_names())

    assert {"cli_tokens", "upload_intents", "images"} <= table_names


def test_migration_creates_required_uniques_and_indexes(tmp_path: Path) -> None:
    engine = sa.create_engine(_upgrade_head(tmp_path))
    inspector = sa.inspect(engine)

    token_uniques = {
        tuple(constraint["column_names"])
        for constraint in inspector.get_unique_constraints("cli_tokens")
    }
    image_uniques = {
        tuple(constraint["column_names"])
        for constraint in inspector.get_unique_constraints("images")
    }
    intent_indexes = {index["name"] for index in inspector.get_indexes("upload_intents")}
    image_indexes = {index["name"] for index in inspector.get_indexes("images")}

    assert ("token_hash",) in token_uniques
    assert ("public_id",) in image_uniques
    assert ("intent_id",) in image_uniques
    assert "ix_upload_intents_user_id_created_at" in intent_indexes
    assert "ix_images_owner_user_id_created_at" in image_indexes


def test_migration_rejects_non_positive_intent_sizes(tmp_path: Path) -> None:
    engine = sa.create_engine(_upgrade_head(tmp_path))

    with engine.begin() as connection:
        connection.execute(
            sa.text(
                "INSERT INTO cli_tokens (id, user_id, label, token_hash, token_preview) "
                "VALUES ('00000000000000000000000000000001', 'u', 'l', 'h', 'p')"
            )
        )

    try:
        with engine.begin() as connection:
            connection.execute(
                sa.text(
                    "INSERT INTO upload_intents (id, token_id, user_id, agent_name, "
                    "original_file_name, content_type, byte_size, markdown_alt) "
                    "VALUES ('00000000000000000000000000000002', "
                    "'00000000000000000000000000000001', 'u', 'a', 'f.png', 'image/png', 0, 'f')"
                )
            )
    except sa.exc.IntegrityError:
        return
    raise AssertionError("byte_size check constraint was not enforced")
