"""Shared FastAPI dependencies for the video routes."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from app.config import Settings, get_settings
from app.storage.factory import _get_video_jobs_repo
from app.storage.video_jobs_repo import VideoJobsRepository
from app.video.providers import VideoProvider, build_video_provider


def get_video_jobs_repo(settings: Annotated[Settings, Depends(get_settings)]) -> VideoJobsRepository:
  """Dependency returning the configured record store."""
  return _get_video_jobs_repo(settings)


@lru_cache(maxsize=1)
def _video_provider_for(settings: Settings) -> VideoProvider:
  # One SDK and storage client per process.
  return build_video_provider(settings)


def get_video_provider(settings: Annotated[Settings, Depends(get_settings)]) -> VideoProvider:
  """Dependency returning the configured rendering provider."""
  return _video_provider_for(settings)
