"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_VEO_MAX_CLIP_SECONDS = 8
_VEO_MIN_CLIP_SECONDS = 4
_ASPECT_RATIOS = {"16:9", "9:16"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the video generation service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  pg_command_timeout: int
  task_secret: str | None
  mock_mode: bool
  video_generation_enabled: bool
  veo_model: str
  veo_api_key: str | None
  video_max_duration: int
  video_aspect_ratio: str
  placeholder_video_base_url: str
  video_storage_bucket: str | None
  video_public_base_url: str | None
  gcp_project_id: str | None
  gcs_storage_host: str | None
  video_transfer_timeout_seconds: float
  sweep_budget_seconds: float
  sweep_batch_size: int
  sweep_record_reserve_seconds: float
  provider_timeout_seconds: float
  submit_lease_seconds: int
  stale_after_seconds: int
  poll_interval_seconds: int

  @property
  def uses_placeholder_provider(self) -> bool:
    """Return True when renders should be faked instead of sent to Veo."""
    return self.mock_mode or not self.video_generation_enabled


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  pg_command_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("VIDEO_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("VIDEO_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("VIDEO_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _non_negative_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value < 0:
    raise ValueError(f"{name} must be zero or a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def default_record_reserve(provider_timeout: float, transfer_timeout: float, store_call: float) -> float:
  """Worst case for advancing one record.

  A submission is a lease write, the provider call and the result write. A poll is
  the provider call, the video transfer and the result write. Each store call is
  bounded by the connect timeout plus the statement timeout.
  """
  submission = provider_timeout + 2 * store_call
  poll = provider_timeout + transfer_timeout + store_call
  return max(submission, poll)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("VIDEO_ENV", "development").lower()
  debug = _parse_bool(os.getenv("VIDEO_DEBUG"))

  log_max_bytes = _positive_int("VIDEO_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = _non_negative_int("VIDEO_LOG_BACKUP_COUNT", "10")
  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("VIDEO_LOG_HTTP_4XX"))

  # MOCK_MODE and VIDEO_GENERATION_ENABLED keep the names the web app already exports.
  mock_mode = _parse_bool(os.getenv("MOCK_MODE"))
  video_generation_enabled = _parse_bool(os.getenv("VIDEO_GENERATION_ENABLED"), default=True)
  veo_api_key = _optional_str(os.getenv("GOOGLE_VEO_API_KEY")) or _optional_str(os.getenv("GOOGLE_GENAI_API_KEY"))

  # Single-scene clips: Veo renders 4-8 seconds per request, so longer targets are clamped.
  video_max_duration = _positive_int("VIDEO_MAX_DURATION", "30")
  video_max_duration = max(_VEO_MIN_CLIP_SECONDS, min(video_max_duration, _VEO_MAX_CLIP_SECONDS))

  video_aspect_ratio = (os.getenv("VIDEO_ASPECT_RATIO") or "16:9").strip()
  if video_aspect_ratio not in _ASPECT_RATIOS:
    raise ValueError("VIDEO_ASPECT_RATIO must be '16:9' or '9:16'.")

  sweep_budget_seconds = _positive_float("VIDEO_SWEEP_BUDGET_SECONDS", "60")
  provider_timeout_seconds = _positive_float("VIDEO_PROVIDER_TIMEOUT_SECONDS", "15")
  video_transfer_timeout_seconds = _positive_float("VIDEO_TRANSFER_TIMEOUT_SECONDS", "15")
  pg_connect_timeout = _positive_int("VIDEO_PG_CONNECT_TIMEOUT", "5")
  pg_command_timeout = _positive_int("VIDEO_PG_COMMAND_TIMEOUT", "5")
  sweep_record_reserve_seconds = _positive_float("VIDEO_SWEEP_RECORD_RESERVE_SECONDS", str(default_record_reserve(provider_timeout_seconds, video_transfer_timeout_seconds, pg_connect_timeout + pg_command_timeout)))
  if sweep_record_reserve_seconds >= sweep_budget_seconds:
    raise ValueError("VIDEO_SWEEP_RECORD_RESERVE_SECONDS must be smaller than VIDEO_SWEEP_BUDGET_SECONDS.")

  submit_lease_seconds = _positive_int("VIDEO_SUBMIT_LEASE_SECONDS", "120")
  if submit_lease_seconds <= provider_timeout_seconds + pg_connect_timeout + pg_command_timeout:
    raise ValueError("VIDEO_SUBMIT_LEASE_SECONDS must exceed the provider timeout plus one store call.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("VIDEO_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    pg_dsn=os.getenv("VIDEO_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=pg_connect_timeout,
    pg_command_timeout=pg_command_timeout,
    task_secret=_optional_str(os.getenv("VIDEO_TASK_SECRET")),
    mock_mode=mock_mode,
    video_generation_enabled=video_generation_enabled,
    veo_model=(os.getenv("VEO_MODEL") or "veo-3.1-generate-preview").strip(),
    veo_api_key=veo_api_key,
    video_max_duration=video_max_duration,
    video_aspect_ratio=video_aspect_ratio,
    placeholder_video_base_url=(os.getenv("VIDEO_PLACEHOLDER_BASE_URL") or "https://example.com/videos").strip().rstrip("/"),
    video_storage_bucket=_optional_str(os.getenv("VIDEO_STORAGE_BUCKET")),
    video_public_base_url=_optional_str(os.getenv("VIDEO_PUBLIC_BASE_URL")),
    gcp_project_id=_optional_str(os.getenv("GCP_PROJECT_ID")),
    gcs_storage_host=_optional_str(os.getenv("GCS_STORAGE_HOST")),
    video_transfer_timeout_seconds=video_transfer_timeout_seconds,
    sweep_budget_seconds=sweep_budget_seconds,
    sweep_batch_size=_positive_int("VIDEO_SWEEP_BATCH_SIZE", "10"),
    sweep_record_reserve_seconds=sweep_record_reserve_seconds,
    provider_timeout_seconds=provider_timeout_seconds,
    submit_lease_seconds=submit_lease_seconds,
    stale_after_seconds=_positive_int("VIDEO_STALE_AFTER_SECONDS", "900"),
    poll_interval_seconds=_non_negative_int("VIDEO_POLL_INTERVAL_SECONDS", "0"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Migrations and cron scripts must not depend on unrelated env vars.
  debug = _parse_bool(os.getenv("VIDEO_DEBUG"))
  pg_connect_timeout = _positive_int("VIDEO_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = os.getenv("VIDEO_PG_DSN") or os.getenv("DATABASE_URL")
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout, pg_command_timeout=_positive_int("VIDEO_PG_COMMAND_TIMEOUT", "5"))


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
