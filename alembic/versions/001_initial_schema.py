"""Initial schema with the jobs table

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Check if tables already exist and skip if so
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    if "jobs" in inspector.get_table_names():
        return

    op.create_table(
        "jobs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("input_text", sa.Text, nullable=False),
        sa.Column("source_language", sa.String(10)),
        sa.Column("target_language", sa.String(10)),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("result_text", sa.Text),
        sa.Column("detected_language", sa.String(10)),
        sa.Column("confidence", sa.Float),
        sa.Column("provider", sa.String(50)),
        sa.Column("error_detail", sa.Text),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.create_index("idx_jobs_status", "jobs", ["status"])
    op.create_index("idx_jobs_kind", "jobs", ["kind"])
    op.create_index("idx_jobs_created_at", "jobs", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_jobs_created_at", table_name="jobs")
    op.drop_index("idx_jobs_kind", table_name="jobs")
    op.drop_index("idx_jobs_status", table_name="jobs")
    op.drop_table("jobs")
