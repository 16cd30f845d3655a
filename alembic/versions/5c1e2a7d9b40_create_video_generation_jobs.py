"""create video generation jobs

Revision ID: 5c1e2a7d9b40
Revises:
Create Date: 2026-10-17 09:12:41.318552

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5c1e2a7d9b40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_OPEN_STATUSES = "status IN ('not_requested', 'pending', 'processing')"


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "video_generation_jobs",
    sa.Column("escalation_id", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("request_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("provider_job_id", sa.String(), nullable=True),
    sa.Column("result_url", sa.Text(), nullable=True),
    sa.Column("last_error", sa.Text(), nullable=True),
    sa.Column("professor_id", sa.String(), nullable=True),
    sa.Column("student_id", sa.String(), nullable=True),
    sa.Column("claim_token", sa.String(), nullable=True),
    sa.Column("claimed_until", sa.DateTime(timezone=True), nullable=True),
    sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.CheckConstraint("status IN ('not_requested', 'pending', 'processing', 'completed', 'failed')", name="ck_video_generation_jobs_status"),
    sa.CheckConstraint("(status = 'completed') = (COALESCE(result_url, '') <> '')", name="ck_video_generation_jobs_result_url"),
    sa.CheckConstraint("(status = 'failed') = (COALESCE(last_error, '') <> '')", name="ck_video_generation_jobs_last_error"),
    sa.CheckConstraint("status NOT IN ('processing', 'completed') OR provider_job_id IS NOT NULL", name="ck_video_generation_jobs_provider_job_submitted"),
    sa.CheckConstraint("status NOT IN ('not_requested', 'pending') OR provider_job_id IS NULL", name="ck_video_generation_jobs_provider_job_unsubmitted"),
    sa.PrimaryKeyConstraint("escalation_id"),
  )
  op.create_index("ix_video_generation_jobs_professor_id", "video_generation_jobs", ["professor_id"], unique=False)
  op.create_index("ix_video_generation_jobs_student_id", "video_generation_jobs", ["student_id"], unique=False)
  # Sweeps only scan open records.
  op.create_index("ix_video_generation_jobs_open", "video_generation_jobs", ["status", "created_at"], unique=False, postgresql_where=sa.text(_OPEN_STATUSES))


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_video_generation_jobs_open", table_name="video_generation_jobs", postgresql_where=sa.text(_OPEN_STATUSES))
  op.drop_index("ix_video_generation_jobs_student_id", table_name="video_generation_jobs")
  op.drop_index("ix_video_generation_jobs_professor_id", table_name="video_generation_jobs")
  op.drop_table("video_generation_jobs")
