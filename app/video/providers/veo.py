"""Google Veo provider built on the google-genai SDK."""

from __future__ import annotations

import asyncio
import logging
import warnings
from dataclasses import dataclass
from typing import Any

import httpx
from google.api_core import exceptions as google_exceptions
from pydantic.warnings import ArbitraryTypeWarning
from starlette.concurrency import run_in_threadpool

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import errors, types

from app.services.video_storage_client import VideoStorageClient, video_object_name
from app.video.errors import (
  CONTENT_POLICY_MESSAGE,
  PROVIDER_FAILED_MESSAGE,
  REJECTED_MESSAGE,
  UNUSABLE_RESULT_MESSAGE,
  FatalSubmissionError,
  ProviderPollError,
  RetryableSubmissionError,
)
from app.video.models import Failed, ProviderStatus, StillRunning, Succeeded, VideoRequest

logger = logging.getLogger(__name__)

_RETRYABLE_CLIENT_CODES = {408, 429}
_CONTENT_POLICY_KEYWORDS = ("violat", "usage guidelines", "safety", "content polic", "responsible ai")
_NEGATIVE_PROMPT = "text overlay, watermark, logo, blurry, deformed, distorted faces"


def _mentions_content_policy(text: str) -> bool:
  lowered = text.lower()
  return any(keyword in lowered for keyword in _CONTENT_POLICY_KEYWORDS)


@dataclass(frozen=True)
class RenderedVideo:
  """Finished Veo render that still has to be copied to storage."""

  video: Any


def _has_content(video: Any) -> bool:
  # Gemini API results carry a files URI; inline bytes show up when the SDK already fetched them.
  return bool(getattr(video, "video_bytes", None) or getattr(video, "uri", None))


def normalize_operation(operation: Any) -> StillRunning | Failed | RenderedVideo:
  """Translate a Veo long-running operation into a provider-neutral status.

  A finished operation with a video comes back as RenderedVideo; the caller
  publishes it before reporting success.
  """
  if not getattr(operation, "done", False):
    return StillRunning()

  error = getattr(operation, "error", None)
  if error:
    logger.warning("Veo operation failed operation=%s error=%s", getattr(operation, "name", None), error)
    if _mentions_content_policy(str(error)):
      return Failed(CONTENT_POLICY_MESSAGE)
    return Failed(PROVIDER_FAILED_MESSAGE)

  response = getattr(operation, "response", None) or getattr(operation, "result", None)
  generated_videos = list(getattr(response, "generated_videos", None) or [])
  if not generated_videos:
    filtered = getattr(response, "rai_media_filtered_count", None) or 0
    if filtered > 0:
      reasons = getattr(response, "rai_media_filtered_reasons", None)
      logger.warning("Veo output filtered operation=%s filtered=%s reasons=%s", getattr(operation, "name", None), filtered, reasons)
      return Failed(CONTENT_POLICY_MESSAGE)
    logger.warning("Veo operation finished without videos operation=%s", getattr(operation, "name", None))
    return Failed(PROVIDER_FAILED_MESSAGE)

  video = getattr(generated_videos[0], "video", None)
  if video is None or not _has_content(video):
    logger.warning("Veo returned unusable video reference operation=%s video=%r", getattr(operation, "name", None), video)
    return Failed(UNUSABLE_RESULT_MESSAGE)
  return RenderedVideo(video)


class VeoVideoProvider:
  """Submit text-to-video renders to Veo, then publish finished videos to storage."""

  name = "veo"

  def __init__(self, *, model: str, api_key: str, timeout_seconds: float, storage: VideoStorageClient, transfer_timeout_seconds: float, client: genai.Client | None = None) -> None:
    self._model = model
    self._timeout_seconds = timeout_seconds
    self._transfer_timeout_seconds = transfer_timeout_seconds
    self._storage = storage
    self._client = client or genai.Client(api_key=api_key)

  async def submit(self, request: VideoRequest) -> str:
    config = types.GenerateVideosConfig(aspect_ratio=request.aspect_ratio, duration_seconds=request.duration_seconds, number_of_videos=1, negative_prompt=_NEGATIVE_PROMPT)
    try:
      operation = await asyncio.wait_for(self._client.aio.models.generate_videos(model=self._model, prompt=request.prompt, config=config), timeout=self._timeout_seconds)
    except errors.ClientError as exc:
      if exc.code in _RETRYABLE_CLIENT_CODES:
        raise RetryableSubmissionError(REJECTED_MESSAGE, f"Veo throttled submission code={exc.code}: {exc.message}") from exc
      public_message = CONTENT_POLICY_MESSAGE if _mentions_content_policy(str(exc)) else REJECTED_MESSAGE
      raise FatalSubmissionError(public_message, f"Veo rejected submission code={exc.code}: {exc.message}") from exc
    except errors.APIError as exc:
      raise RetryableSubmissionError(REJECTED_MESSAGE, f"Veo server error code={exc.code}: {exc.message}") from exc
    except (TimeoutError, httpx.TransportError, OSError) as exc:
      raise RetryableSubmissionError(REJECTED_MESSAGE, f"Veo submission transport failure: {type(exc).__name__}") from exc

    operation_name = getattr(operation, "name", None)
    if not operation_name:
      # Without an id the job cannot be tracked; resubmitting on a later sweep is the only recovery.
      raise RetryableSubmissionError(REJECTED_MESSAGE, "Veo accepted the request without an operation name")

    logger.info("Veo render submitted escalation_id=%s operation=%s model=%s", request.escalation_id, operation_name, self._model)
    return str(operation_name)

  async def poll(self, provider_job_id: str) -> ProviderStatus:
    operation_ref = types.GenerateVideosOperation(name=provider_job_id)
    try:
      operation = await asyncio.wait_for(self._client.aio.operations.get(operation=operation_ref), timeout=self._timeout_seconds)
    except errors.ClientError as exc:
      if exc.code == 404:
        logger.warning("Veo operation not found operation=%s", provider_job_id)
        return Failed(PROVIDER_FAILED_MESSAGE)
      raise ProviderPollError(f"Veo status call failed code={exc.code}: {exc.message}") from exc
    except errors.APIError as exc:
      raise ProviderPollError(f"Veo status call failed code={exc.code}: {exc.message}") from exc
    except (TimeoutError, httpx.TransportError, OSError) as exc:
      raise ProviderPollError(f"Veo status call transport failure: {type(exc).__name__}") from exc

    outcome = normalize_operation(operation)
    if not isinstance(outcome, RenderedVideo):
      return outcome
    return await self._publish(provider_job_id, outcome.video)

  async def _publish(self, provider_job_id: str, video: Any) -> ProviderStatus:
    """Copy a finished render into the video bucket and report its public URL."""
    object_name = video_object_name(provider_job_id)
    try:
      result_url = await asyncio.wait_for(self._transfer(video, object_name), timeout=self._transfer_timeout_seconds)
    except errors.APIError as exc:
      raise ProviderPollError(f"Veo video download failed operation={provider_job_id} code={exc.code}: {exc.message}") from exc
    except (google_exceptions.GoogleAPIError, TimeoutError, httpx.TransportError, OSError) as exc:
      raise ProviderPollError(f"Video transfer failed operation={provider_job_id} object={object_name}: {type(exc).__name__}") from exc

    if result_url is None:
      logger.warning("Veo video download was empty operation=%s", provider_job_id)
      return Failed(UNUSABLE_RESULT_MESSAGE)
    return Succeeded(result_url)

  async def _transfer(self, video: Any, object_name: str) -> str | None:
    payload = getattr(video, "video_bytes", None) or await run_in_threadpool(self._client.files.download, file=video)
    if not payload:
      return None
    result_url = await self._storage.upload_video(object_name=object_name, payload=payload)
    logger.info("Veo render published bucket=%s object=%s bytes=%d", self._storage.bucket_name, object_name, len(payload))
    return result_url
