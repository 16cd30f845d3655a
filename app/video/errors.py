"""Error types raised across the video pipeline and the public failure messages."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
  from app.video.models import SweepSummary

# Stored failure reasons are always one of these; provider detail only goes to logs.
MISSING_CONTENT_MESSAGE = "No response text available for video generation."
REJECTED_MESSAGE = "The video request was rejected by the provider."
CONTENT_POLICY_MESSAGE = "The video was blocked by the provider's content policy."
PROVIDER_FAILED_MESSAGE = "The provider could not render this video."
UNUSABLE_RESULT_MESSAGE = "The provider returned an unusable video reference."
GENERIC_FAILURE_MESSAGE = "Video generation failed. Please try regenerating."

PUBLIC_FAILURE_MESSAGES = frozenset({MISSING_CONTENT_MESSAGE, REJECTED_MESSAGE, CONTENT_POLICY_MESSAGE, PROVIDER_FAILED_MESSAGE, UNUSABLE_RESULT_MESSAGE, GENERIC_FAILURE_MESSAGE})


def public_failure_message(last_error: str | None) -> str:
  """Map a stored failure reason to text that is safe to show end users."""
  if last_error in PUBLIC_FAILURE_MESSAGES:
    return last_error
  return GENERIC_FAILURE_MESSAGE


class VideoPipelineError(Exception):
  """Base class for video pipeline failures."""


class ProviderError(VideoPipelineError):
  """Base class for failures talking to the rendering provider."""


class SubmissionError(ProviderError):
  """Submission was not accepted."""

  def __init__(self, public_message: str, detail: str | None = None) -> None:
    super().__init__(detail or public_message)
    self.public_message = public_message
    self.detail = detail or public_message


class RetryableSubmissionError(SubmissionError):
  """Transient submission failure; the record stays eligible for the next sweep."""


class FatalSubmissionError(SubmissionError):
  """Submission can never succeed as built; the record is marked failed."""


class ProviderPollError(ProviderError):
  """The status call itself failed; the record is left untouched."""


class StoreError(VideoPipelineError):
  """Record store operation failed."""


class RetryableStoreError(StoreError):
  """Transient store failure; safe to retry on a later sweep."""


class CorruptRecordError(StoreError):
  """A stored row breaks the record invariants and cannot be loaded."""


class InvalidTransitionError(ValueError):
  """A change set would break the record state machine."""


class InfrastructureFailure(VideoPipelineError):
  """A sweep could not discover work; carries the counters gathered so far."""

  def __init__(self, message: str, summary: SweepSummary) -> None:
    super().__init__(message)
    self.summary = summary
