"""Read-only view of a record's generation state."""

from __future__ import annotations

from app.storage.video_jobs_repo import VideoJobsRepository
from app.video.errors import public_failure_message
from app.video.models import GenerationRecord, GenerationStatus, VideoStatus


def describe_record(record: GenerationRecord) -> VideoStatus:
  """Project a record onto what end users may see."""
  if record.status == GenerationStatus.COMPLETED:
    return VideoStatus(status=record.status, result_url=record.result_url)
  if record.status == GenerationStatus.FAILED:
    return VideoStatus(status=record.status, error=public_failure_message(record.last_error))
  return VideoStatus(status=record.status)


class StatusReporter:
  """Answer status queries straight from the store; never calls the provider."""

  def __init__(self, repo: VideoJobsRepository) -> None:
    self._repo = repo

  async def get_status(self, record_id: str) -> VideoStatus | None:
    record = await self._repo.get(record_id)
    if record is None:
      return None
    return describe_record(record)
