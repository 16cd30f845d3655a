"""Domain types for escalation video generation jobs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from app.video.errors import InvalidTransitionError


class GenerationStatus(str, Enum):
  """Lifecycle status of a record's video generation."""

  NOT_REQUESTED = "not_requested"
  PENDING = "pending"
  PROCESSING = "processing"
  COMPLETED = "completed"
  FAILED = "failed"

  @property
  def is_terminal(self) -> bool:
    return self in {GenerationStatus.COMPLETED, GenerationStatus.FAILED}


# Both statuses mean "no provider job exists yet" and are discovered together.
NOT_SUBMITTED_STATUSES: tuple[GenerationStatus, ...] = (GenerationStatus.NOT_REQUESTED, GenerationStatus.PENDING)
OPEN_STATUSES: tuple[GenerationStatus, ...] = (*NOT_SUBMITTED_STATUSES, GenerationStatus.PROCESSING)

# Status edges the pipeline may take. Terminal statuses only reopen through an explicit regenerate.
ALLOWED_TRANSITIONS: dict[GenerationStatus, frozenset[GenerationStatus]] = {
  GenerationStatus.NOT_REQUESTED: frozenset({GenerationStatus.PENDING, GenerationStatus.PROCESSING, GenerationStatus.FAILED}),
  GenerationStatus.PENDING: frozenset({GenerationStatus.PROCESSING, GenerationStatus.FAILED}),
  GenerationStatus.PROCESSING: frozenset({GenerationStatus.COMPLETED, GenerationStatus.FAILED}),
  GenerationStatus.COMPLETED: frozenset({GenerationStatus.PENDING}),
  GenerationStatus.FAILED: frozenset({GenerationStatus.PENDING}),
}

MUTABLE_FIELDS = frozenset({"status", "provider_job_id", "result_url", "last_error", "claim_token", "claimed_until", "submitted_at", "completed_at", "request", "professor_id"})
_LEASE_FIELDS = frozenset({"claim_token", "claimed_until"})


@dataclass(frozen=True)
class GenerationRecord:
  """Persisted generation state for one escalation."""

  escalation_id: str
  status: GenerationStatus
  request: dict[str, Any] = field(default_factory=dict)
  provider_job_id: str | None = None
  result_url: str | None = None
  last_error: str | None = None
  professor_id: str | None = None
  student_id: str | None = None
  claim_token: str | None = None
  claimed_until: datetime | None = None
  submitted_at: datetime | None = None
  completed_at: datetime | None = None
  created_at: datetime | None = None
  updated_at: datetime | None = None

  def __post_init__(self) -> None:
    if (self.status == GenerationStatus.COMPLETED) != bool(self.result_url):
      raise ValueError(f"result_url must be set exactly when status is completed (escalation_id={self.escalation_id})")
    if (self.status == GenerationStatus.FAILED) != bool(self.last_error):
      raise ValueError(f"last_error must be set exactly when status is failed (escalation_id={self.escalation_id})")
    if self.status in {GenerationStatus.PROCESSING, GenerationStatus.COMPLETED} and not self.provider_job_id:
      raise ValueError(f"provider_job_id is required once a job is submitted (escalation_id={self.escalation_id})")
    if self.status in NOT_SUBMITTED_STATUSES and self.provider_job_id:
      raise ValueError(f"provider_job_id must be empty before submission (escalation_id={self.escalation_id})")

  @property
  def response_text(self) -> str | None:
    value = self.request.get("response_text")
    if isinstance(value, str) and value.strip():
      return value.strip()
    return None

  def lease_is_held(self, now: datetime) -> bool:
    """Return True while another sweep owns the submission lease."""
    return self.claimed_until is not None and self.claimed_until > now


def check_transition(current: GenerationStatus, changes: Mapping[str, Any]) -> None:
  """Reject change sets that would leave the allowed status graph."""
  unknown = set(changes) - MUTABLE_FIELDS
  if unknown:
    raise InvalidTransitionError(f"Unsupported fields in transition: {sorted(unknown)}")

  target = changes.get("status", current)
  if not isinstance(target, GenerationStatus):
    target = GenerationStatus(target)

  if target == current:
    # Same-status writes are limited to lease bookkeeping and request refreshes.
    extra = set(changes) - _LEASE_FIELDS - {"status", "request"}
    if extra:
      raise InvalidTransitionError(f"Same-status write on {current.value} may not touch {sorted(extra)}")
    return

  if target not in ALLOWED_TRANSITIONS[current]:
    raise InvalidTransitionError(f"Transition {current.value} -> {target.value} is not allowed")


@dataclass(frozen=True)
class StillRunning:
  """Provider job has not finished."""


@dataclass(frozen=True)
class Succeeded:
  """Provider job finished and produced a playable video."""

  result_url: str


@dataclass(frozen=True)
class Failed:
  """Provider job finished without a usable video."""

  reason: str


ProviderStatus = StillRunning | Succeeded | Failed


@dataclass(frozen=True)
class VideoRequest:
  """Everything a provider needs to start rendering one clip."""

  escalation_id: str
  prompt: str
  aspect_ratio: str
  duration_seconds: int


class RecordOutcome(str, Enum):
  """What a single sweep step did to one record."""

  SUBMITTED = "submitted"
  REJECTED = "rejected"
  STILL_RUNNING = "still_running"
  COMPLETED = "completed"
  FAILED = "failed"
  UNCHANGED = "unchanged"
  SKIPPED = "skipped"


@dataclass
class SweepSummary:
  """Counters reported after one poll sweep."""

  created: int = 0
  polled: int = 0
  completed: int = 0
  failed: int = 0
  skipped: int = 0
  duration_ms: int = 0
  budget_exhausted: bool = False

  def record(self, outcome: RecordOutcome) -> None:
    """Fold one record outcome into the counters."""
    if outcome == RecordOutcome.SUBMITTED:
      self.created += 1
    elif outcome == RecordOutcome.REJECTED:
      self.failed += 1
    elif outcome == RecordOutcome.SKIPPED:
      self.skipped += 1
    else:
      self.polled += 1
      if outcome == RecordOutcome.COMPLETED:
        self.completed += 1
      elif outcome == RecordOutcome.FAILED:
        self.failed += 1

  @property
  def message(self) -> str:
    return f"Created {self.created} jobs, polled {self.polled} jobs, completed {self.completed}, failed {self.failed}"

  def to_dict(self) -> dict[str, Any]:
    return {
      "created": self.created,
      "polled": self.polled,
      "completed": self.completed,
      "failed": self.failed,
      "skipped": self.skipped,
      "duration": self.duration_ms,
      "budgetExhausted": self.budget_exhausted,
      "message": self.message,
    }


@dataclass(frozen=True)
class VideoStatus:
  """Read-only view of a record's generation state for the UI."""

  status: GenerationStatus
  result_url: str | None = None
  error: str | None = None
