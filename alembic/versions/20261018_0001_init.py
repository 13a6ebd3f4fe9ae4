"""init schema (users + files + file_shares)

Revision ID: 20261018_0001
Revises: None
Create Date: 2026-10-18 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    if not _table_exists("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("email", sa.String(length=320), nullable=True),
            sa.Column("access_token", sa.String(length=255), nullable=False),
            sa.Column("profile_json", sa.JSON(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=False)
        op.create_index("ix_users_access_token", "users", ["access_token"], unique=True)
        op.create_index("ix_users_is_active", "users", ["is_active"], unique=False)
        op.create_index("ix_users_created_at", "users", ["created_at"], unique=False)

    if not _table_exists("files"):
        op.create_table(
            "files",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("storage_path", sa.String(length=512), nullable=False),
            sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("public_url", sa.String(length=2048), nullable=True),
            sa.Column("size_bytes", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("mime_type", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_files_owner_id", "files", ["owner_id"], unique=False)
        op.create_index("ix_files_storage_path", "files", ["storage_path"], unique=False)
        op.create_index("ix_files_is_public", "files", ["is_public"], unique=False)
        op.create_index("ix_files_created_at", "files", ["created_at"], unique=False)
        op.create_index("ix_files_updated_at", "files", ["updated_at"], unique=False)

    if not _table_exists("file_shares"):
        op.create_table(
            "file_shares",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("file_id", sa.String(length=36), sa.ForeignKey("files.id"), nullable=False),
            sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("token", sa.String(length=64), nullable=False),
            sa.Column("share_email", sa.String(length=320), nullable=True),
            sa.Column("owner_email", sa.String(length=320), nullable=True),
            sa.Column("owner_name", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_file_shares_file_id", "file_shares", ["file_id"], unique=False)
        op.create_index("ix_file_shares_owner_id", "file_shares", ["owner_id"], unique=False)
        op.create_index("ix_file_shares_token", "file_shares", ["token"], unique=True)
        op.create_index("ix_file_shares_created_at", "file_shares", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_table("file_shares")
    op.drop_table("files")
    op.drop_table("users")
