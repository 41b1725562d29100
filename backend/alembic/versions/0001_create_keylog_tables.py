"""create request_logs and key_logs

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "request_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("endpoint", sa.String(length=500), nullable=False),
        sa.Column("response_left", sa.Text(), nullable=True),
        sa.Column("response_right", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_request_logs_endpoint", "request_logs", ["endpoint"])

    op.create_table(
        "key_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "request_id",
            sa.Integer(),
            sa.ForeignKey("request_logs.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("endpoint", sa.String(length=500), nullable=False),
        sa.Column("key_path", sa.String(length=1000), nullable=False),
        sa.Column("left_value", sa.Text(), nullable=True),
        sa.Column("right_value", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_key_logs_lookup", "key_logs", ["endpoint", "key_path", "timestamp"])
    op.create_index("ix_key_logs_created_at", "key_logs", ["created_at"])
    op.create_index("ix_key_logs_request_id", "key_logs", ["request_id"])


def downgrade() -> None:
    op.drop_index("ix_key_logs_request_id", table_name="key_logs")
    op.drop_index("ix_key_logs_created_at", table_name="key_logs")
    op.drop_index("ix_key_logs_lookup", table_name="key_logs")
    op.drop_table("key_logs")
    op.drop_index("ix_request_logs_endpoint", table_name="request_logs")
    op.drop_table("request_logs")
