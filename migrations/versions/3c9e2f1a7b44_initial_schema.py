"""initial schema

Revision ID: 3c9e2f1a7b44
Revises:
Create Date: 2026-10-19 09:12:41.512306

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c9e2f1a7b44"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

relationship_status = sa.Enum(
    "PENDING", "ACCEPTED", "DECLINED", "BLOCKED", name="relationship_status"
)
message_type = sa.Enum("TEXT", "FILE", name="message_type")


def upgrade() -> None:
    """Create identities, relationships, messages and attachment metadata."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("nickname", sa.String(length=128), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("signing_public_key", sa.Text(), nullable=True),
        sa.Column("key_exchange_public_key", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "relationships",
        sa.Column("requester_id", sa.Uuid(), nullable=False),
        sa.Column("addressee_id", sa.Uuid(), nullable=False),
        sa.Column("pair_low", sa.Uuid(), nullable=False),
        sa.Column("pair_high", sa.Uuid(), nullable=False),
        sa.Column("status", relationship_status, nullable=False),
        sa.Column("action_user_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["addressee_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["action_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("requester_id", "addressee_id"),
        sa.UniqueConstraint("pair_low", "pair_high", name="uq_relationship_pair"),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("sender_id", sa.Uuid(), nullable=False),
        sa.Column("receiver_id", sa.Uuid(), nullable=False),
        sa.Column("ciphertext", sa.Text(), nullable=False),
        sa.Column("message_type", message_type, nullable=False),
        sa.Column("nonce", sa.Text(), nullable=False),
        sa.Column("file_url", sa.String(length=512), nullable=True),
        sa.Column("original_filename", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_messages_sender_receiver", "messages", ["sender_id", "receiver_id"])

    op.create_table(
        "stored_files",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("storage_name", sa.String(length=255), nullable=False),
        sa.Column("original_filename", sa.String(length=255), nullable=False),
        sa.Column("content_type", sa.String(length=255), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column("uploader_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["uploader_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("storage_name"),
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_table("stored_files")
    op.drop_index("ix_messages_sender_receiver", table_name="messages")
    op.drop_table("messages")
    op.drop_table("relationships")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
    bind = op.get_bind()
    message_type.drop(bind, checkfirst=True)
    relationship_status.drop(bind, checkfirst=True)
