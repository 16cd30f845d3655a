"""State machine that advances one generation record per step."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import timedelta

from app.storage.video_jobs_repo import VideoJobsRepository
from app.utils.ids import generate_claim_token
from app.video.clock import Clock, SweepBudget
from app.video.errors import FatalSubmissionError, ProviderPollError, RetryableSubmissionError, StoreError
from app.video.models import NOT_SUBMITTED_STATUSES, Failed, GenerationRecord, GenerationStatus, RecordOutcome, StillRunning, Succeeded, SweepSummary
from app.video.prompts import VideoStyle, build_video_request
from app.video.providers.base import VideoProvider

logger = logging.getLogger(__name__)

_RELEASE_LEASE = {"claim_token": None, "claimed_until": None}


class JobLifecycleEngine:
  """Decide and apply the next step for each record: submit, poll, finalize or skip.

  Every state change goes through a conditional store write, so when two sweeps
  race on the same record exactly one write lands and the other is dropped.
  """

  def __init__(self, *, repo: VideoJobsRepository, provider: VideoProvider, clock: Clock, style: VideoStyle, lease_seconds: int, stale_after_seconds: int) -> None:
    self._repo = repo
    self._provider = provider
    self._clock = clock
    self._style = style
    self._lease = timedelta(seconds=lease_seconds)
    self._stale_after = timedelta(seconds=stale_after_seconds)

  async def run_batch(self, records: Sequence[GenerationRecord], budget: SweepBudget, summary: SweepSummary) -> bool:
    """Advance records in order until done or out of budget. Returns True when the budget ran out."""
    for index, record in enumerate(records):
      if not budget.allows_another_record():
        logger.info("Sweep budget exhausted; leaving %d record(s) for the next sweep remaining_seconds=%.2f", len(records) - index, budget.remaining_seconds)
        return True
      summary.record(await self.advance(record))
    return False

  async def advance(self, record: GenerationRecord) -> RecordOutcome:
    """Run one unit of work for a record. Never raises for per-record failures."""
    try:
      if record.status in NOT_SUBMITTED_STATUSES:
        return await self.submit(record)
      if record.status == GenerationStatus.PROCESSING:
        return await self.poll(record)
    except Exception:  # noqa: BLE001
      logger.exception("Unexpected failure advancing escalation_id=%s status=%s", record.escalation_id, record.status.value)
      return RecordOutcome.SKIPPED

    logger.debug("Nothing to do for escalation_id=%s status=%s", record.escalation_id, record.status.value)
    return RecordOutcome.SKIPPED

  async def submit(self, record: GenerationRecord) -> RecordOutcome:
    now = self._clock.now()
    if record.lease_is_held(now):
      logger.debug("Submission lease held elsewhere escalation_id=%s claimed_until=%s", record.escalation_id, record.claimed_until)
      return RecordOutcome.SKIPPED

    token = generate_claim_token()
    claim = {"claim_token": token, "claimed_until": now + self._lease}
    try:
      claimed = await self._repo.try_transition(record.escalation_id, record.status, claim, lease_free_at=now)
    except StoreError as exc:
      logger.warning("Could not claim escalation_id=%s for submission: %s", record.escalation_id, exc)
      return RecordOutcome.SKIPPED

    if not claimed:
      logger.info("Lost submission claim escalation_id=%s; another sweep owns it", record.escalation_id)
      return RecordOutcome.SKIPPED

    try:
      request = build_video_request(record, self._style)
      provider_job_id = await self._provider.submit(request)
    except FatalSubmissionError as exc:
      logger.warning("Submission rejected escalation_id=%s provider=%s detail=%s", record.escalation_id, self._provider.name, exc.detail)
      changes = {"status": GenerationStatus.FAILED, "last_error": exc.public_message, **_RELEASE_LEASE}
      return await self._write(record, changes, claim_token=token, applied=RecordOutcome.REJECTED)
    except RetryableSubmissionError as exc:
      logger.warning("Submission deferred escalation_id=%s provider=%s detail=%s", record.escalation_id, self._provider.name, exc.detail)
      await self._write(record, _RELEASE_LEASE, claim_token=token, applied=RecordOutcome.SKIPPED)
      return RecordOutcome.SKIPPED

    changes = {"status": GenerationStatus.PROCESSING, "provider_job_id": provider_job_id, "submitted_at": self._clock.now(), **_RELEASE_LEASE}
    outcome = await self._write(record, changes, claim_token=token, applied=RecordOutcome.SUBMITTED)
    if outcome != RecordOutcome.SUBMITTED:
      # The provider job exists but is not tracked; it renders unobserved until the lease lapses and the record is resubmitted.
      logger.warning("Submitted job not recorded escalation_id=%s provider_job_id=%s", record.escalation_id, provider_job_id)
    else:
      logger.info("Submitted escalation_id=%s provider=%s provider_job_id=%s", record.escalation_id, self._provider.name, provider_job_id)
    return outcome

  async def poll(self, record: GenerationRecord) -> RecordOutcome:
    provider_job_id = record.provider_job_id or ""
    try:
      status = await self._provider.poll(provider_job_id)
    except ProviderPollError as exc:
      logger.warning("Status check failed escalation_id=%s provider_job_id=%s: %s", record.escalation_id, provider_job_id, exc)
      return RecordOutcome.SKIPPED

    if isinstance(status, StillRunning):
      self._warn_if_stale(record)
      return RecordOutcome.STILL_RUNNING

    if isinstance(status, Succeeded):
      changes = {"status": GenerationStatus.COMPLETED, "result_url": status.result_url, "completed_at": self._clock.now()}
      outcome = await self._write(record, changes, applied=RecordOutcome.COMPLETED, lost=RecordOutcome.UNCHANGED)
      if outcome == RecordOutcome.COMPLETED:
        logger.info("Video completed escalation_id=%s provider_job_id=%s", record.escalation_id, provider_job_id)
      return outcome

    if isinstance(status, Failed):
      changes = {"status": GenerationStatus.FAILED, "last_error": status.reason, "completed_at": self._clock.now()}
      outcome = await self._write(record, changes, applied=RecordOutcome.FAILED, lost=RecordOutcome.UNCHANGED)
      if outcome == RecordOutcome.FAILED:
        logger.warning("Video failed escalation_id=%s provider_job_id=%s reason=%s", record.escalation_id, provider_job_id, status.reason)
      return outcome

    raise TypeError(f"Unknown provider status {status!r}")

  async def _write(self, record: GenerationRecord, changes: dict, *, applied: RecordOutcome, lost: RecordOutcome = RecordOutcome.SKIPPED, claim_token: str | None = None) -> RecordOutcome:
    try:
      written = await self._repo.try_transition(record.escalation_id, record.status, changes, claim_token=claim_token)
    except StoreError as exc:
      logger.warning("Store write failed escalation_id=%s target=%s: %s", record.escalation_id, changes.get("status", record.status).value, exc)
      return RecordOutcome.SKIPPED

    if not written:
      logger.info("Conditional write dropped escalation_id=%s expected_status=%s", record.escalation_id, record.status.value)
      return lost
    return applied

  def _warn_if_stale(self, record: GenerationRecord) -> None:
    if record.submitted_at is None:
      return
    running_for = self._clock.now() - record.submitted_at
    if running_for > self._stale_after:
      logger.warning("Video job still running after %ds escalation_id=%s provider_job_id=%s", int(running_for.total_seconds()), record.escalation_id, record.provider_job_id)
