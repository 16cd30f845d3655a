"""Rendering provider implementations and selection."""

from __future__ import annotations

import logging

from app.config import Settings
from app.services.video_storage_client import build_video_storage_client
from app.video.providers.base import VideoProvider
from app.video.providers.placeholder import PlaceholderVideoProvider
from app.video.providers.veo import VeoVideoProvider

__all__ = ["PlaceholderVideoProvider", "VeoVideoProvider", "VideoProvider", "build_video_provider"]


def build_video_provider(settings: Settings) -> VideoProvider:
  """Return the provider the current configuration selects."""
  logger = logging.getLogger("app.video.providers")
  if settings.uses_placeholder_provider:
    logger.info("Video provider=placeholder mock_mode=%s generation_enabled=%s", settings.mock_mode, settings.video_generation_enabled)
    return PlaceholderVideoProvider(settings.placeholder_video_base_url)

  if not settings.veo_api_key:
    raise ValueError("GOOGLE_VEO_API_KEY or GOOGLE_GENAI_API_KEY must be set when video generation is enabled.")

  if not settings.video_storage_bucket:
    raise ValueError("VIDEO_STORAGE_BUCKET must be set when video generation is enabled.")

  storage = build_video_storage_client(settings)
  logger.info("Video provider=veo model=%s bucket=%s", settings.veo_model, storage.bucket_name)
  return VeoVideoProvider(
    model=settings.veo_model,
    api_key=settings.veo_api_key,
    timeout_seconds=settings.provider_timeout_seconds,
    storage=storage,
    transfer_timeout_seconds=settings.video_transfer_timeout_seconds,
  )
