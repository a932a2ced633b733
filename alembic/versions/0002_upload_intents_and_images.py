"""Add upload intent ledger and append-only images catalog."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0002_upload_intents_and_images"
down_revision = "0001_cli_tokens"
branch_labels = None
depends_on = None

sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    """Create upload_intents and images tables with lookup indexes."""

    op.create_table(
        "upload_intents",
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
    op.create_index(
        "ix_upload_intents_user_id_created_at",
        "upload_intents",
        ["user_id", "created_at"],
        unique=False,
    )
    op.create_index("ix_upload_intents_token_id", "upload_intents", ["token_id"], unique=False)

    op.create_table(
        "images",
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
    op.create_index(
        "ix_images_owner_user_id_created_at",
        "images",
        ["owner_user_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    """Drop images and upload_intents tables."""

    op.drop_index("ix_images_owner_user_id_created_at", table_name="images")
    op.drop_table("images")

    op.drop_index("ix_upload_intents_token_id", table_name="upload_intents")
    op.drop_index("ix_upload_intents_user_id_created_at", table_name="upload_intents")
    op.drop_table("upload_intents")
