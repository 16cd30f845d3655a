from app.config import Settings
from app.storage.postgres_video_jobs_repo import PostgresVideoJobsRepository
from app.storage.video_jobs_repo import VideoJobsRepository


def _get_video_jobs_repo(settings: Settings) -> VideoJobsRepository:
  """Return the active video jobs repository."""

  # Generation records only live in Postgres.

  if not settings.pg_dsn:
    raise ValueError("VIDEO_PG_DSN must be set to enable Postgres persistence.")

  return PostgresVideoJobsRepository()
