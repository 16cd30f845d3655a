"""Unit tests for the read-only status view."""

from __future__ import annotations

import pytest

from app.video.errors import CONTENT_POLICY_MESSAGE, GENERIC_FAILURE_MESSAGE
from app.video.models import GenerationStatus, VideoStatus
from app.video.status import StatusReporter
from tests.fakes import pending_record, processing_record

RESULT_URL = "https://storage.googleapis.com/videos/e1.mp4"


@pytest.mark.anyio
async def test_status_reports_each_state(repo, provider) -> None:
  repo.seed(
    pending_record("pending"),
    processing_record("processing", "P1"),
    pending_record("completed", status=GenerationStatus.COMPLETED, provider_job_id="P2", result_url=RESULT_URL),
    pending_record("failed", status=GenerationStatus.FAILED, last_error=CONTENT_POLICY_MESSAGE),
  )
  reporter = StatusReporter(repo)

  assert await reporter.get_status("pending") == VideoStatus(status=GenerationStatus.PENDING)
  assert await reporter.get_status("processing") == VideoStatus(status=GenerationStatus.PROCESSING)
  assert await reporter.get_status("completed") == VideoStatus(status=GenerationStatus.COMPLETED, result_url=RESULT_URL)
  assert await reporter.get_status("failed") == VideoStatus(status=GenerationStatus.FAILED, error=CONTENT_POLICY_MESSAGE)
  assert await reporter.get_status("missing") is None
  assert provider.poll_calls == []


@pytest.mark.anyio
async def test_status_never_exposes_raw_failure_text(repo) -> None:
  repo.seed(pending_record("E1", status=GenerationStatus.FAILED, last_error="RESOURCE_EXHAUSTED: project 1234 quota"))

  view = await StatusReporter(repo).get_status("E1")

  assert view is not None
  assert view.error == GENERIC_FAILURE_MESSAGE
  assert view.result_url is None
