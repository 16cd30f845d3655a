from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, Index, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base

# JSONB on Postgres, plain JSON on other dialects (sqlite in tests).
RequestJSON = JSON().with_variant(JSONB(), "postgresql")


class VideoGenerationJob(Base):
  __tablename__ = "video_generation_jobs"
  __table_args__ = (
    CheckConstraint("status IN ('not_requested', 'pending', 'processing', 'completed', 'failed')", name="ck_video_generation_jobs_status"),
    CheckConstraint("(status = 'completed') = (COALESCE(result_url, '') <> '')", name="ck_video_generation_jobs_result_url"),
    CheckConstraint("(status = 'failed') = (COALESCE(last_error, '') <> '')", name="ck_video_generation_jobs_last_error"),
    CheckConstraint("status NOT IN ('processing', 'completed') OR provider_job_id IS NOT NULL", name="ck_video_generation_jobs_provider_job_submitted"),
    CheckConstraint("status NOT IN ('not_requested', 'pending') OR provider_job_id IS NULL", name="ck_video_generation_jobs_provider_job_unsubmitted"),
    Index("ix_video_generation_jobs_open", "status", "created_at", postgresql_where=text("status IN ('not_requested', 'pending', 'processing')")),
  )

  escalation_id: Mapped[str] = mapped_column(String, primary_key=True)
  status: Mapped[str] = mapped_column(String, nullable=False)
  request_json: Mapped[dict] = mapped_column(RequestJSON, nullable=False, default=dict)
  provider_job_id: Mapped[str | None] = mapped_column(String, nullable=True)
  result_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
  professor_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  student_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  claim_token: Mapped[str | None] = mapped_column(String, nullable=True)
  claimed_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
