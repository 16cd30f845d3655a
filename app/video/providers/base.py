"""Provider contract for rendering backends."""

from __future__ import annotations

from typing import Protocol

from app.video.models import ProviderStatus, VideoRequest


class VideoProvider(Protocol):
  """Submit render jobs and report their progress in provider-neutral terms."""

  name: str

  async def submit(self, request: VideoRequest) -> str:
    """Start a render and return the provider job id.

    Raises RetryableSubmissionError or FatalSubmissionError.
    """

  async def poll(self, provider_job_id: str) -> ProviderStatus:
    """Return the current status of a submitted job with a single remote call.

    Raises ProviderPollError when the status call itself fails.
    """
