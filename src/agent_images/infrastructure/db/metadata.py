"""SQLAlchemy metadata definitions for CLI token, upload intent and image tables."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()
sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

cli_tokens = sa.Table(
    "cli_tokens",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
    sa.Column("user_id", sa.Text(), nullable=False),
    sa.Column("label", sa.Text(), nullable=False),
    sa.Column("token_hash", sa.Text(), nullable=False),
    sa.Column("token_preview", sa.Text(), nullable=False),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    sa.UniqueConstraint("token_hash", name="uq_cli_tokens_token_hash"),
)
sa.Index("ix_cli_tokens_user_id_created_at", cli_tokens.c.user_id, cli_tokens.c.created_at)

upload_intents = sa.Table(
    "upload_intents",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
    sa.Column("token_id", sa.Uuid(), sa.ForeignKey("cli_tokens.id"), nullable=False),
    sa.Column("user_id", sa.Text(), nullable=False),
    sa.Column("agent_name", sa.Text(), nullable=False),
    sa.Column("original_file_name", sa.Text(), nullable=False),
    sa.Column("content_type", sa.Text(), nullable=False),
    sa.Column("byte_size", sqlite_bigint, nullable=False),
    sa.Column("markdown_alt", sa.Text(), nullable=False),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
    sa.CheckConstraint("byte_size > 0", name="ck_upload_intents_byte_size_positive"),
)
sa.Index(
    "ix_upload_intents_user_id_created_at",
    upload_intents.c.user_id,
    upload_intents.c.created_at,
)
sa.Index("ix_upload_intents_token_id", upload_intents.c.token_id)

images = sa.Table(
    "images",
    metadata,
    sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("public_id", sa.Text(), nullable=False),
    sa.Column("blob_id", sa.Text(), nullable=False),
    sa.Column("intent_id", sa.Uuid(), sa.ForeignKey("upload_intents.id"), nullable=True),
    sa.Column("owner_user_id", sa.Text(), nullable=False),
    sa.Column("agent_name", sa.Text(), nullable=False),
    sa.Column("original_file_name", sa.Text(), nullable=False),
    sa.Column("content_type", sa.Text(), nullable=False),
    sa.Column("byte_size", sqlite_bigint, nullable=False),
    sa.Column("markdown_alt", sa.Text(), nullable=False),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.UniqueConstraint("public_id", name="uq_images_public_id"),
    sa.UniqueConstraint("intent_id", name="uq_images_intent_id"),
)
sa.Index("ix_images_owner_user_id_created_at", images.c.owner_user_id, images.c.created_at)
