"""Poll orchestrator: one discover, advance, aggregate cycle per invocation."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from app.storage.video_jobs_repo import VideoJobsRepository
from app.video.clock import Clock, SweepBudget
from app.video.errors import InfrastructureFailure, StoreError
from app.video.lifecycle import JobLifecycleEngine
from app.video.models import GenerationRecord, SweepSummary

logger = logging.getLogger(__name__)


class PollOrchestrator:
  """Run sweeps over the record store.

  Holds no state between sweeps. Both candidate sets are read before any work
  starts, so a job submitted in this sweep is first polled by the next one.
  Not-yet-submitted records are advanced before in-flight ones.
  """

  def __init__(self, *, repo: VideoJobsRepository, engine: JobLifecycleEngine, clock: Clock, budget_seconds: float, reserve_seconds: float, batch_size: int) -> None:
    self._repo = repo
    self._engine = engine
    self._clock = clock
    self._budget_seconds = budget_seconds
    self._reserve_seconds = reserve_seconds
    self._batch_size = batch_size

  async def run_sweep(self) -> SweepSummary:
    budget = SweepBudget(self._clock, ceiling_seconds=self._budget_seconds, reserve_seconds=self._reserve_seconds)
    summary = SweepSummary()
    logger.info("Video sweep started budget_seconds=%.1f batch_size=%d", self._budget_seconds, self._batch_size)

    not_submitted = await self._discover(self._repo.find_not_submitted, "not-submitted", summary, budget)
    in_flight = await self._discover(self._repo.find_in_flight, "in-flight", summary, budget)

    summary.budget_exhausted = await self._engine.run_batch(not_submitted, budget, summary)
    if not summary.budget_exhausted:
      summary.budget_exhausted = await self._engine.run_batch(in_flight, budget, summary)
    elif in_flight:
      logger.info("Skipping %d in-flight video job(s) this sweep; budget spent on submissions", len(in_flight))

    summary.duration_ms = int(budget.elapsed_seconds * 1000)
    if summary.failed:
      logger.warning("Video sweep finished with failures: %s skipped=%d duration_ms=%d", summary.message, summary.skipped, summary.duration_ms)
    else:
      logger.info("Video sweep finished: %s skipped=%d duration_ms=%d budget_exhausted=%s", summary.message, summary.skipped, summary.duration_ms, summary.budget_exhausted)
    return summary

  async def _discover(self, finder: Callable[[int], Awaitable[list[GenerationRecord]]], label: str, summary: SweepSummary, budget: SweepBudget) -> list[GenerationRecord]:
    try:
      records = await finder(self._batch_size)
    except StoreError as exc:
      summary.duration_ms = int(budget.elapsed_seconds * 1000)
      logger.error("Video sweep aborted; %s discovery failed: %s", label, exc)
      raise InfrastructureFailure(f"Could not load {label} video jobs", summary) from exc
    logger.debug("Discovered %d %s video job(s)", len(records), label)
    return records
