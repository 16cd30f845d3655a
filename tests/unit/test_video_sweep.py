"""Unit tests for whole sweeps over the record store."""

from __future__ import annotations

import asyncio

import pytest

from app.config import get_settings
from app.services.video_jobs import build_poll_orchestrator
from app.video.errors import PROVIDER_FAILED_MESSAGE, InfrastructureFailure
from app.video.models import GenerationStatus, StillRunning, Succeeded
from tests.fakes import make_orchestrator, pending_record, processing_record, tick

RESULT_URL = "https://storage.googleapis.com/videos/e1.mp4"


@pytest.mark.anyio
async def test_record_goes_from_pending_to_completed_over_three_sweeps(repo, provider, clock) -> None:
  repo.seed(pending_record("E1"))
  job_id = provider.job_id_for("E1")
  provider.statuses[job_id] = [StillRunning(), Succeeded(RESULT_URL)]
  orchestrator = make_orchestrator(repo, provider, clock)

  first = await orchestrator.run_sweep()
  assert (first.created, first.polled, first.completed) == (1, 0, 0)
  assert repo.records["E1"].status == GenerationStatus.PROCESSING
  assert repo.records["E1"].provider_job_id == job_id

  second = await orchestrator.run_sweep()
  assert (second.created, second.polled, second.completed) == (0, 1, 0)
  assert repo.records["E1"].status == GenerationStatus.PROCESSING

  third = await orchestrator.run_sweep()
  assert (third.created, third.polled, third.completed) == (0, 1, 1)
  assert third.message == "Created 0 jobs, polled 1 jobs, completed 1, failed 0"
  assert repo.records["E1"].status == GenerationStatus.COMPLETED
  assert repo.records["E1"].result_url == RESULT_URL

  fourth = await orchestrator.run_sweep()
  assert (fourth.created, fourth.polled) == (0, 0)
  assert provider.poll_calls == [job_id, job_id]


@pytest.mark.anyio
async def test_repeated_still_running_polls_change_nothing(repo, provider, clock) -> None:
  repo.seed(processing_record("E1", "P1"))
  before = repo.records["E1"]
  orchestrator = make_orchestrator(repo, provider, clock)

  for _ in range(5):
    summary = await orchestrator.run_sweep()
    assert (summary.polled, summary.completed, summary.failed) == (1, 0, 0)

  assert repo.records["E1"] is before
  assert repo.write_log == []


@pytest.mark.anyio
async def test_terminal_records_are_left_alone(repo, provider, clock) -> None:
  repo.seed(
    pending_record("E1", status=GenerationStatus.COMPLETED, provider_job_id="P1", result_url=RESULT_URL),
    pending_record("E2", status=GenerationStatus.FAILED, last_error=PROVIDER_FAILED_MESSAGE),
  )
  orchestrator = make_orchestrator(repo, provider, clock)

  summary = await orchestrator.run_sweep()

  assert summary.to_dict()["message"] == "Created 0 jobs, polled 0 jobs, completed 0, failed 0"
  assert repo.write_log == []
  assert provider.submissions == []
  assert provider.poll_calls == []


@pytest.mark.anyio
async def test_overlapping_sweeps_submit_a_record_once(repo, provider, clock) -> None:
  repo.seed(pending_record("E1"))
  first = make_orchestrator(repo, provider, clock)
  second = make_orchestrator(repo, provider, clock)

  summaries = await asyncio.gather(first.run_sweep(), second.run_sweep())

  assert sum(summary.created for summary in summaries) == 1
  assert sum(summary.skipped for summary in summaries) == 1
  assert len(provider.submissions) == 1
  assert provider.violations == []
  assert repo.records["E1"].provider_job_id == provider.job_id_for("E1")


@pytest.mark.anyio
async def test_overlapping_sweeps_complete_a_record_once(repo, provider, clock) -> None:
  repo.seed(processing_record("E1", "P1"))
  provider.statuses["P1"] = [Succeeded(RESULT_URL)]

  summaries = await asyncio.gather(make_orchestrator(repo, provider, clock).run_sweep(), make_orchestrator(repo, provider, clock).run_sweep())

  assert sum(summary.completed for summary in summaries) == 1
  assert sum(summary.polled for summary in summaries) == 2
  completions = [entry for entry in repo.write_log if entry[2].get("status") == GenerationStatus.COMPLETED]
  assert len(completions) == 1


@pytest.mark.anyio
async def test_sweep_stops_before_budget_runs_out(repo, provider, clock) -> None:
  repo.seed(*(pending_record(f"E{index}") for index in range(6)))
  provider.on_call = tick(clock, 10)
  orchestrator = make_orchestrator(repo, provider, clock, budget_seconds=45, reserve_seconds=15)

  summary = await orchestrator.run_sweep()

  assert summary.created == 4
  assert summary.budget_exhausted is True
  assert summary.duration_ms <= 45_000
  untouched = [record for record in repo.records.values() if record.status == GenerationStatus.PENDING]
  assert sorted(record.escalation_id for record in untouched) == ["E4", "E5"]
  assert all(record.claim_token is None for record in untouched)

  follow_up = await orchestrator.run_sweep()

  assert follow_up.created == 2
  assert all(record.status == GenerationStatus.PROCESSING for record in repo.records.values())


@pytest.mark.anyio
async def test_unsubmitted_records_go_first_oldest_first(repo, provider, clock) -> None:
  repo.seed(processing_record("E0", "P0"), pending_record("E-old"), pending_record("E-new"))
  provider.on_call = tick(clock, 15)
  orchestrator = make_orchestrator(repo, provider, clock, budget_seconds=30, reserve_seconds=20)

  summary = await orchestrator.run_sweep()

  assert summary.budget_exhausted is True
  assert [request.escalation_id for request in provider.submissions] == ["E-old"]
  assert provider.poll_calls == []


@pytest.mark.anyio
async def test_batch_size_limits_discovery(repo, provider, clock) -> None:
  repo.seed(pending_record("E1"), pending_record("E2"), pending_record("E3"))
  orchestrator = make_orchestrator(repo, provider, clock, batch_size=2)

  summary = await orchestrator.run_sweep()

  assert summary.created == 2
  assert repo.records["E3"].status == GenerationStatus.PENDING


@pytest.mark.anyio
async def test_discovery_failure_aborts_sweep(repo, provider, clock) -> None:
  repo.seed(pending_record("E1"))
  repo.fail_discovery = True
  orchestrator = make_orchestrator(repo, provider, clock)

  with pytest.raises(InfrastructureFailure) as excinfo:
    await orchestrator.run_sweep()

  assert excinfo.value.summary.created == 0
  assert provider.submissions == []


@pytest.mark.anyio
async def test_orchestrator_built_from_settings_runs(repo, provider, clock) -> None:
  repo.seed(pending_record("E1"))
  orchestrator = build_poll_orchestrator(get_settings(), repo, provider, clock=clock)

  summary = await orchestrator.run_sweep()

  assert summary.created == 1
  assert provider.submissions[0].duration_seconds == get_settings().video_max_duration
