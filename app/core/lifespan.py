import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from app.config import Settings, get_settings
from app.core.database import get_db_engine
from app.core.logging import _initialize_logging
from app.services.video_jobs import run_video_sweep
from app.storage.factory import _get_video_jobs_repo
from app.video.errors import InfrastructureFailure
from app.video.providers import build_video_provider

logger = logging.getLogger("app.core.lifespan")


async def _sweep_forever(settings: Settings) -> None:
  """Run sweeps back to back with a pause in between until cancelled."""
  repo = _get_video_jobs_repo(settings)
  provider = build_video_provider(settings)
  while True:
    try:
      await run_video_sweep(settings, repo, provider)
    except InfrastructureFailure as exc:
      logger.warning("Periodic video sweep aborted: %s", exc)
    except Exception:  # noqa: BLE001
      logger.exception("Periodic video sweep crashed; retrying after the interval")
    await asyncio.sleep(settings.poll_interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging and, when configured, the in-process sweep loop."""
  settings = get_settings()
  _initialize_logging(settings)
  logger.info("Startup complete env=%s dsn=%s provider=%s", settings.environment, _redact_dsn(settings.pg_dsn), "placeholder" if settings.uses_placeholder_provider else "veo")

  sweep_task: asyncio.Task[None] | None = None
  if settings.poll_interval_seconds > 0:
    logger.info("In-process video sweep enabled interval_seconds=%d", settings.poll_interval_seconds)
    sweep_task = asyncio.create_task(_sweep_forever(settings), name="video-sweep")

  try:
    yield
  finally:
    if sweep_task is not None:
      sweep_task.cancel()
      with contextlib.suppress(asyncio.CancelledError):
        await sweep_task
    engine = get_db_engine()
    if engine is not None:
      await engine.dispose()


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
