"""Provider used when real rendering is switched off."""

from __future__ import annotations

import logging

from app.video.errors import PROVIDER_FAILED_MESSAGE
from app.video.models import Failed, ProviderStatus, Succeeded, VideoRequest

_JOB_PREFIX = "placeholder:"


class PlaceholderVideoProvider:
  """Accept every request and report it finished on the first poll with a static URL."""

  name = "placeholder"

  def __init__(self, base_url: str) -> None:
    self._base_url = base_url.rstrip("/")
    self._logger = logging.getLogger(__name__)

  async def submit(self, request: VideoRequest) -> str:
    self._logger.info("Placeholder render accepted escalation_id=%s", request.escalation_id)
    return f"{_JOB_PREFIX}{request.escalation_id}"

  async def poll(self, provider_job_id: str) -> ProviderStatus:
    if not provider_job_id.startswith(_JOB_PREFIX):
      # A job submitted to a real provider before mock mode was switched on.
      return Failed(PROVIDER_FAILED_MESSAGE)
    escalation_id = provider_job_id.removeprefix(_JOB_PREFIX)
    return Succeeded(f"{self._base_url}/{escalation_id}.mp4")
