"""Create compilation_jobs table.

Revision ID: 4f1c2a9e7b30
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "4f1c2a9e7b30"
down_revision = None
branch_labels = None
depends_on = None

_UTC_NOW = sa.text("""to_char((now() AT TIME ZONE 'UTC'), 'YYYY-MM-DD"T"HH24:MI:SS"Z"')""")


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "compilation_jobs",
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("request_id", sa.String(), nullable=False),
    sa.Column("job_kind", sa.String(), nullable=False),
    sa.Column("contract_type", sa.String(), nullable=False),
    sa.Column("contract_name", sa.String(), nullable=False),
    sa.Column("request_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("source_hash", sa.String(length=64), nullable=False),
    sa.Column("progress", sa.Float(), server_default=sa.text("0"), nullable=False),
    sa.Column("phase", sa.String(), nullable=True),
    sa.Column("artifact_id", sa.String(length=64), nullable=True),
    sa.Column("result_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("logs_json", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False),
    sa.Column("created_at", sa.String(), server_default=_UTC_NOW, nullable=False),
    sa.Column("updated_at", sa.String(), server_default=_UTC_NOW, nullable=False),
    sa.Column("started_at", sa.String(), nullable=True),
    sa.Column("completed_at", sa.String(), nullable=True),
    sa.PrimaryKeyConstraint("job_id"),
  )
  op.create_index(op.f("ix_compilation_jobs_request_id"), "compilation_jobs", ["request_id"], unique=False)
  op.create_index(op.f("ix_compilation_jobs_source_hash"), "compilation_jobs", ["source_hash"], unique=False)
  op.create_index("ix_compilation_jobs_status_created_at", "compilation_jobs", ["status", "created_at"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_compilation_jobs_status_created_at", table_name="compilation_jobs")
  op.drop_index(op.f("ix_compilation_jobs_source_hash"), table_name="compilation_jobs")
  op.drop_index(op.f("ix_compilation_jobs_request_id"), table_name="compilation_jobs")
  op.drop_table("compilation_jobs")
