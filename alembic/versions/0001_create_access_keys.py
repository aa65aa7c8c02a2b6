"""create access_keys and usage_logs

Revision ID: 0001_create_access_keys
Revises:
Create Date: 2026-10-18 12:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_create_access_keys"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing = set(inspector.get_table_names())

    # Tables may already exist from the create_all fallback
    if "access_keys" not in existing:
        op.create_table(
            "access_keys",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("key_code", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("max_uses", sa.Integer(), nullable=False, server_default="-1"),
            sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name", name="uq_access_keys_name"),
        )
        op.create_index("ix_access_keys_id", "access_keys", ["id"])
        op.create_index("ix_access_keys_key_code", "access_keys", ["key_code"], unique=True)

    if "usage_logs" not in existing:
        op.create_table(
            "usage_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("key_id", sa.Integer(), nullable=False),
            sa.Column("request_text", sa.Text(), nullable=True),
            sa.Column("success", sa.Boolean(), nullable=False),
            sa.Column("error_msg", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.ForeignKeyConstraint(["key_id"], ["access_keys.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_usage_logs_id", "usage_logs", ["id"])
        op.create_index("ix_usage_logs_key_id", "usage_logs", ["key_id"])
        op.create_index("ix_usage_logs_created_at", "usage_logs", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_usage_logs_created_at", table_name="usage_logs")
    op.drop_index("ix_usage_logs_key_id", table_name="usage_logs")
    op.drop_index("ix_usage_logs_id", table_name="usage_logs")
    op.drop_table("usage_logs")
    op.drop_index("ix_access_keys_key_code", table_name="access_keys")
    op.drop_index("ix_access_keys_id", table_name="access_keys")
    op.drop_table("access_keys")
