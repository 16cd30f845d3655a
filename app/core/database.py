from __future__ import annotations

from app.config import get_database_settings
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
  pass


engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def database_url() -> str | None:
  """Return the SQLAlchemy URL, forcing the asyncpg driver for plain postgres DSNs."""
  settings = get_database_settings()
  url = settings.pg_dsn
  if url and url.startswith("postgres://"):
    url = url.replace("postgres://", "postgresql+asyncpg://", 1)
  elif url and url.startswith("postgresql://"):
    url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

  return url


def get_db_engine() -> AsyncEngine | None:
  global engine
  settings = get_database_settings()
  url = database_url()
  if engine is None and url:
    connect_args: dict[str, object] = {}
    if url.startswith("postgresql+asyncpg://"):
      # asyncpg names its connect timeout `timeout`; `command_timeout` caps each statement.
      connect_args["timeout"] = settings.pg_connect_timeout
      connect_args["command_timeout"] = settings.pg_command_timeout
    engine = create_async_engine(url, echo=settings.debug, pool_pre_ping=True, pool_timeout=settings.pg_connect_timeout, connect_args=connect_args)
  return engine


def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
  global SessionLocal
  if SessionLocal is None:
    db_engine = get_db_engine()
    if db_engine:
      SessionLocal = async_sessionmaker(bind=db_engine, expire_on_commit=False, class_=AsyncSession)
  return SessionLocal
