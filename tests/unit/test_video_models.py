"""Unit tests for generation record invariants and the transition table."""

from __future__ import annotations

import pytest

from app.video.errors import GENERIC_FAILURE_MESSAGE, PROVIDER_FAILED_MESSAGE, InvalidTransitionError, public_failure_message
from app.video.models import GenerationRecord, GenerationStatus, RecordOutcome, SweepSummary, check_transition


def test_completed_record_requires_result_url() -> None:
  with pytest.raises(ValueError, match="result_url"):
    GenerationRecord(escalation_id="E1", status=GenerationStatus.COMPLETED, provider_job_id="P1")


def test_result_url_is_rejected_outside_completed() -> None:
  with pytest.raises(ValueError, match="result_url"):
    GenerationRecord(escalation_id="E1", status=GenerationStatus.PROCESSING, provider_job_id="P1", result_url="https://cdn.example.com/e1.mp4")


def test_failed_record_requires_last_error() -> None:
  with pytest.raises(ValueError, match="last_error"):
    GenerationRecord(escalation_id="E1", status=GenerationStatus.FAILED)


def test_processing_record_requires_provider_job_id() -> None:
  with pytest.raises(ValueError, match="provider_job_id"):
    GenerationRecord(escalation_id="E1", status=GenerationStatus.PROCESSING)


def test_unsubmitted_record_cannot_carry_provider_job_id() -> None:
  with pytest.raises(ValueError, match="provider_job_id"):
    GenerationRecord(escalation_id="E1", status=GenerationStatus.PENDING, provider_job_id="P1")


def test_failed_record_may_keep_its_provider_job_id() -> None:
  record = GenerationRecord(escalation_id="E1", status=GenerationStatus.FAILED, provider_job_id="P1", last_error=PROVIDER_FAILED_MESSAGE)
  assert record.status.is_terminal


def test_response_text_ignores_blank_values() -> None:
  record = GenerationRecord(escalation_id="E1", status=GenerationStatus.PENDING, request={"response_text": "   "})
  assert record.response_text is None


@pytest.mark.parametrize(
  ("current", "target"),
  [
    (GenerationStatus.NOT_REQUESTED, GenerationStatus.PENDING),
    (GenerationStatus.PENDING, GenerationStatus.PROCESSING),
    (GenerationStatus.PENDING, GenerationStatus.FAILED),
    (GenerationStatus.PROCESSING, GenerationStatus.COMPLETED),
    (GenerationStatus.PROCESSING, GenerationStatus.FAILED),
    (GenerationStatus.COMPLETED, GenerationStatus.PENDING),
    (GenerationStatus.FAILED, GenerationStatus.PENDING),
  ],
)
def test_allowed_transitions(current: GenerationStatus, target: GenerationStatus) -> None:
  check_transition(current, {"status": target})


@pytest.mark.parametrize(
  ("current", "target"),
  [
    (GenerationStatus.PROCESSING, GenerationStatus.PENDING),
    (GenerationStatus.COMPLETED, GenerationStatus.FAILED),
    (GenerationStatus.FAILED, GenerationStatus.PROCESSING),
    (GenerationStatus.COMPLETED, GenerationStatus.PROCESSING),
  ],
)
def test_disallowed_transitions(current: GenerationStatus, target: GenerationStatus) -> None:
  with pytest.raises(InvalidTransitionError):
    check_transition(current, {"status": target})


def test_same_status_write_is_limited_to_lease_fields() -> None:
  check_transition(GenerationStatus.PENDING, {"claim_token": "abc", "claimed_until": None})

  with pytest.raises(InvalidTransitionError):
    check_transition(GenerationStatus.PROCESSING, {"result_url": "https://cdn.example.com/e1.mp4"})


def test_unknown_fields_are_rejected() -> None:
  with pytest.raises(InvalidTransitionError, match="Unsupported"):
    check_transition(GenerationStatus.PENDING, {"escalation_id": "E2"})


def test_sweep_summary_tallies_outcomes() -> None:
  summary = SweepSummary()
  for outcome in (
    RecordOutcome.SUBMITTED,
    RecordOutcome.SUBMITTED,
    RecordOutcome.REJECTED,
    RecordOutcome.STILL_RUNNING,
    RecordOutcome.COMPLETED,
    RecordOutcome.FAILED,
    RecordOutcome.UNCHANGED,
    RecordOutcome.SKIPPED,
  ):
    summary.record(outcome)

  assert (summary.created, summary.polled, summary.completed, summary.failed, summary.skipped) == (2, 4, 1, 2, 1)
  assert summary.message == "Created 2 jobs, polled 4 jobs, completed 1, failed 2"
  assert summary.to_dict()["budgetExhausted"] is False


def test_public_failure_message_hides_unknown_text() -> None:
  assert public_failure_message(PROVIDER_FAILED_MESSAGE) == PROVIDER_FAILED_MESSAGE
  assert public_failure_message("grpc INTERNAL: backend shard 7 crashed") == GENERIC_FAILURE_MESSAGE
  assert public_failure_message(None) == GENERIC_FAILURE_MESSAGE
