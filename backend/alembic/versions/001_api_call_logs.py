"""Add api_call_logs table for the outbound API log view

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "api_call_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entry_id", sa.String(64), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("log_type", sa.String(32), nullable=False),
        sa.Column("method", sa.String(8), nullable=False),
        sa.Column("url", sa.String(512), nullable=False),
        sa.Column("request_json", sa.Text(), nullable=True),
        sa.Column("response_status", sa.Integer(), nullable=False),
        sa.Column("response_json", sa.Text(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
    )
    op.create_index("ix_api_call_logs_id", "api_call_logs", ["id"], unique=False)
    op.create_index("ix_api_call_logs_log_type", "api_call_logs", ["log_type"], unique=False)
    op.create_index("ix_api_call_logs_created_at", "api_call_logs", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_api_call_logs_created_at", table_name="api_call_logs")
    op.drop_index("ix_api_call_logs_log_type", table_name="api_call_logs")
    op.drop_index("ix_api_call_logs_id", table_name="api_call_logs")
    op.drop_table("api_call_logs")
