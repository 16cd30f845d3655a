import logging
from typing import Any

from fastapi import HTTPException, status

from app.config import Settings
from app.core.security import Caller
from app.storage.video_jobs_repo import VideoJobsRepository
from app.video.clock import Clock, SystemClock
from app.video.lifecycle import JobLifecycleEngine
from app.video.models import GenerationRecord, GenerationStatus, SweepSummary, VideoStatus
from app.video.prompts import VideoStyle
from app.video.providers.base import VideoProvider
from app.video.status import describe_record
from app.video.sweep import PollOrchestrator

logger = logging.getLogger(__name__)

_RECORD_NOT_FOUND_MSG = "Video generation has not been requested for this escalation."
_GENERATION_STARTED_MSG = "Video generation started. Status will be updated when complete."
_GENERATION_IN_PROGRESS_MSG = "Video generation is already in progress."

# Clearing these returns a finished record to its pre-submission shape.
_RESET_FIELDS: dict[str, Any] = {
  "provider_job_id": None,
  "result_url": None,
  "last_error": None,
  "submitted_at": None,
  "completed_at": None,
  "claim_token": None,
  "claimed_until": None,
}


def build_poll_orchestrator(settings: Settings, repo: VideoJobsRepository, provider: VideoProvider, *, clock: Clock | None = None) -> PollOrchestrator:
  """Wire an orchestrator from configuration."""
  clock = clock or SystemClock()
  engine = JobLifecycleEngine(
    repo=repo,
    provider=provider,
    clock=clock,
    style=VideoStyle.from_settings(settings),
    lease_seconds=settings.submit_lease_seconds,
    stale_after_seconds=settings.stale_after_seconds,
  )
  return PollOrchestrator(
    repo=repo,
    engine=engine,
    clock=clock,
    budget_seconds=settings.sweep_budget_seconds,
    reserve_seconds=settings.sweep_record_reserve_seconds,
    batch_size=settings.sweep_batch_size,
  )


async def run_video_sweep(settings: Settings, repo: VideoJobsRepository, provider: VideoProvider) -> SweepSummary:
  """Run one sweep; raises InfrastructureFailure when the store is unreachable."""
  orchestrator = build_poll_orchestrator(settings, repo, provider)
  return await orchestrator.run_sweep()


def _request_snapshot(response_text: str, *, student_name: str | None, category: str | None, course_name: str | None) -> dict[str, Any]:
  snapshot: dict[str, Any] = {"response_text": response_text}
  # Keep optional context sparse so stored payloads stay small.
  for key, value in (("student_name", student_name), ("category", category), ("course_name", course_name)):
    if value:
      snapshot[key] = value
  return snapshot


async def request_video_generation(
  repo: VideoJobsRepository,
  escalation_id: str,
  caller: Caller,
  *,
  response_text: str | None,
  student_id: str | None = None,
  student_name: str | None = None,
  category: str | None = None,
  course_name: str | None = None,
) -> tuple[GenerationStatus, str]:
  """Queue an escalation for video generation, or reset a finished one for regeneration.

  Returns the resulting status and a short message. Calling again while a job is
  pending or processing leaves the record as is.
  """
  text = (response_text or "").strip()
  if not text:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No response text available for video generation")

  snapshot = _request_snapshot(text, student_name=student_name, category=category, course_name=course_name)
  existing = await repo.get(escalation_id)

  if existing is None:
    record = GenerationRecord(escalation_id=escalation_id, status=GenerationStatus.PENDING, request=snapshot, professor_id=caller.id, student_id=student_id)
    if await repo.create(record):
      logger.info("Video generation requested escalation_id=%s professor_id=%s", escalation_id, caller.id)
      return GenerationStatus.PENDING, _GENERATION_STARTED_MSG
    # Lost an insert race; continue against the row that won.
    existing = await repo.get(escalation_id)
    if existing is None:
      raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Video generation request conflicted; please retry.")

  if existing.professor_id and existing.professor_id != caller.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

  if existing.status in {GenerationStatus.PENDING, GenerationStatus.PROCESSING}:
    logger.info("Video generation already queued escalation_id=%s status=%s", escalation_id, existing.status.value)
    return existing.status, _GENERATION_IN_PROGRESS_MSG

  changes: dict[str, Any] = {"status": GenerationStatus.PENDING, "request": snapshot}
  if existing.status.is_terminal:
    changes.update(_RESET_FIELDS)
  if existing.professor_id is None:
    # Unowned rows are claimed by whoever requests them, in the same conditional write.
    changes["professor_id"] = caller.id

  if not await repo.try_transition(escalation_id, existing.status, changes):
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Video generation state changed; please retry.")

  logger.info("Video generation reset to pending escalation_id=%s previous_status=%s", escalation_id, existing.status.value)
  return GenerationStatus.PENDING, _GENERATION_STARTED_MSG


async def get_video_status(repo: VideoJobsRepository, escalation_id: str, caller: Caller) -> VideoStatus:
  """Return the status of one record to the professor or student it belongs to."""
  record = await repo.get(escalation_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_RECORD_NOT_FOUND_MSG)

  if caller.id not in {record.professor_id, record.student_id}:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

  return describe_record(record)
