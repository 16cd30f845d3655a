"""Postgres-backed repository for video generation records using SQLAlchemy."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session_factory
from app.schema.video_jobs import VideoGenerationJob
from app.storage.video_jobs_repo import VideoJobsRepository
from app.utils.db_retry import classify_db_failure
from app.video.errors import CorruptRecordError, RetryableStoreError
from app.video.models import NOT_SUBMITTED_STATUSES, GenerationRecord, GenerationStatus, check_transition

logger = logging.getLogger(__name__)

# Record attribute -> column name where the two differ.
_COLUMN_NAMES = {"request": "request_json"}


def _as_utc(value: datetime | None) -> datetime | None:
  # SQLite hands back naive datetimes; every stored value is UTC.
  if value is None or value.tzinfo is not None:
    return value
  return value.replace(tzinfo=UTC)


def _column_values(changes: Mapping[str, Any]) -> dict[str, Any]:
  values: dict[str, Any] = {}
  for key, value in changes.items():
    if isinstance(value, GenerationStatus):
      value = value.value
    values[_COLUMN_NAMES.get(key, key)] = value
  return values


class PostgresVideoJobsRepository(VideoJobsRepository):
  """Persist generation records to Postgres using SQLAlchemy."""

  def __init__(self, session_factory: Callable[[], AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def find_not_submitted(self, limit: int) -> list[GenerationRecord]:
    statuses = [status.value for status in NOT_SUBMITTED_STATUSES]
    stmt = select(VideoGenerationJob).where(VideoGenerationJob.status.in_(statuses)).order_by(VideoGenerationJob.created_at.asc(), VideoGenerationJob.escalation_id.asc()).limit(limit)
    return await self._select_records(stmt, operation="find_not_submitted")

  async def find_in_flight(self, limit: int) -> list[GenerationRecord]:
    stmt = (
      select(VideoGenerationJob)
      .where(VideoGenerationJob.status == GenerationStatus.PROCESSING.value)
      .order_by(VideoGenerationJob.submitted_at.asc(), VideoGenerationJob.escalation_id.asc())
      .limit(limit)
    )
    return await self._select_records(stmt, operation="find_in_flight")

  async def try_transition(
    self,
    record_id: str,
    expected_status: GenerationStatus,
    changes: Mapping[str, Any],
    *,
    lease_free_at: datetime | None = None,
    claim_token: str | None = None,
  ) -> bool:
    check_transition(expected_status, changes)
    stmt = update(VideoGenerationJob).where(VideoGenerationJob.escalation_id == record_id, VideoGenerationJob.status == expected_status.value)
    if lease_free_at is not None:
      stmt = stmt.where(or_(VideoGenerationJob.claimed_until.is_(None), VideoGenerationJob.claimed_until <= lease_free_at))
    if claim_token is not None:
      stmt = stmt.where(VideoGenerationJob.claim_token == claim_token)
    values = _column_values(changes)
    values["updated_at"] = datetime.now(UTC)
    stmt = stmt.values(**values).execution_options(synchronize_session=False)

    try:
      async with self._session_factory() as session:
        result = await session.execute(stmt)
        await session.commit()
    except (SQLAlchemyError, OSError) as exc:
      raise self._store_error("try_transition", exc) from exc

    applied = result.rowcount == 1
    if not applied:
      logger.debug("Conditional write lost escalation_id=%s expected_status=%s", record_id, expected_status.value)
    return applied

  async def get(self, record_id: str) -> GenerationRecord | None:
    try:
      async with self._session_factory() as session:
        row = await session.get(VideoGenerationJob, record_id)
    except (SQLAlchemyError, OSError) as exc:
      raise self._store_error("get", exc) from exc

    if row is None:
      return None
    try:
      return self._model_to_record(row)
    except (ValueError, TypeError) as exc:
      logger.error("Stored video job row is malformed escalation_id=%s reason=%s", record_id, exc)
      raise CorruptRecordError(f"escalation {record_id} has a malformed row") from exc

  async def create(self, record: GenerationRecord) -> bool:
    row = VideoGenerationJob(
      escalation_id=record.escalation_id,
      status=record.status.value,
      request_json=dict(record.request),
      provider_job_id=record.provider_job_id,
      result_url=record.result_url,
      last_error=record.last_error,
      professor_id=record.professor_id,
      student_id=record.student_id,
      submitted_at=record.submitted_at,
      completed_at=record.completed_at,
    )
    if record.created_at is not None:
      row.created_at = record.created_at

    try:
      async with self._session_factory() as session:
        session.add(row)
        try:
          await session.commit()
        except IntegrityError:
          # Another request inserted the same escalation first.
          await session.rollback()
          return False
    except (SQLAlchemyError, OSError) as exc:
      raise self._store_error("create", exc) from exc

    return True

  async def _select_records(self, stmt: Any, *, operation: str) -> list[GenerationRecord]:
    try:
      async with self._session_factory() as session:
        rows = (await session.execute(stmt)).scalars().all()
    except (SQLAlchemyError, OSError) as exc:
      raise self._store_error(operation, exc) from exc

    records: list[GenerationRecord] = []
    for row in rows:
      try:
        records.append(self._model_to_record(row))
      except (ValueError, TypeError) as exc:
        # One bad row must not hide the rest of the batch.
        logger.error("Skipping malformed video job row operation=%s escalation_id=%s reason=%s", operation, row.escalation_id, exc)
    return records

  @staticmethod
  def _store_error(operation: str, exc: BaseException) -> RetryableStoreError:
    classification = classify_db_failure(exc)
    logger.warning(
      "Video job store call failed operation=%s category=%s sqlstate=%s retryable=%s reason=%s",
      operation,
      classification.category,
      classification.sqlstate or "none",
      classification.retryable,
      classification.reason,
      exc_info=not classification.retryable,
    )
    return RetryableStoreError(f"{operation} failed: {classification.reason}")

  @staticmethod
  def _model_to_record(row: VideoGenerationJob) -> GenerationRecord:
    return GenerationRecord(
      escalation_id=row.escalation_id,
      status=GenerationStatus(row.status),
      request=dict(row.request_json or {}),
      provider_job_id=row.provider_job_id,
      result_url=row.result_url,
      last_error=row.last_error,
      professor_id=row.professor_id,
      student_id=row.student_id,
      claim_token=row.claim_token,
      claimed_until=_as_utc(row.claimed_until),
      submitted_at=_as_utc(row.submitted_at),
      completed_at=_as_utc(row.completed_at),
      created_at=_as_utc(row.created_at),
      updated_at=_as_utc(row.updated_at),
    )
