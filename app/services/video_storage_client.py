"""GCS helper for publishing finished renders at a URL browsers can play."""

from __future__ import annotations

import os
import re
from urllib.parse import quote, urlparse, urlunparse

from app.config import Settings
from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from starlette.concurrency import run_in_threadpool

_GCS_PUBLIC_HOST = "https://storage.googleapis.com"
_VIDEO_CONTENT_TYPE = "video/mp4"
_UNSAFE_OBJECT_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class VideoStorageClient:
  """Thin wrapper over GCS for rendered video uploads."""

  def __init__(self, settings: Settings) -> None:
    if not settings.video_storage_bucket:
      raise RuntimeError("VIDEO_STORAGE_BUCKET must be configured when video generation is enabled.")
    self._bucket_name = settings.video_storage_bucket
    self._storage_host = settings.gcs_storage_host
    if self._storage_host:
      emulator_endpoint = _normalize_emulator_endpoint(self._storage_host)
      os.environ["GCS_STORAGE_EMULATOR_HOST"] = emulator_endpoint
      self._client = storage.Client(project=settings.gcp_project_id or "local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": emulator_endpoint})
      default_base = f"{emulator_endpoint}/{self._bucket_name}"
    else:
      self._client = storage.Client(project=settings.gcp_project_id)
      default_base = f"{_GCS_PUBLIC_HOST}/{self._bucket_name}"
    # A CDN in front of the bucket can be configured instead of the bucket host.
    self._public_base_url = (settings.video_public_base_url or default_base).rstrip("/")

  @property
  def bucket_name(self) -> str:
    """Return bucket name used by this client."""
    return self._bucket_name

  def public_url(self, object_name: str) -> str:
    """Return the stable URL an uploaded object is served from."""
    return f"{self._public_base_url}/{quote(object_name)}"

  async def upload_video(self, *, object_name: str, payload: bytes, cache_control: str = "public, max-age=86400") -> str:
    """Upload MP4 bytes and return the URL clients play them from."""
    if not payload:
      raise ValueError(f"Refusing to upload an empty video to {object_name}")
    bucket = self._client.bucket(self._bucket_name)
    blob = bucket.blob(object_name)
    blob.cache_control = cache_control
    blob.content_type = _VIDEO_CONTENT_TYPE
    await run_in_threadpool(blob.upload_from_string, payload, _VIDEO_CONTENT_TYPE)
    return self.public_url(object_name)


def build_video_storage_client(settings: Settings) -> VideoStorageClient:
  """Create a rendered video storage client."""
  return VideoStorageClient(settings)


def video_object_name(provider_job_id: str) -> str:
  """Derive a stable object name from a provider job id.

  Re-publishing the same job overwrites the same object, so a retried poll never
  leaves a second copy behind.
  """
  tail = provider_job_id.rstrip("/").rsplit("/", 1)[-1]
  safe = _UNSAFE_OBJECT_CHARS.sub("-", tail).strip("-.") or "render"
  return f"videos/{safe}.mp4"


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Normalize emulator endpoint so SDK receives scheme+host+port only."""
  parsed = urlparse(raw_endpoint)
  if not parsed.scheme or not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
