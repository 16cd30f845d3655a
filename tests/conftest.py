"""Shared test configuration."""

from __future__ import annotations

import os

# Settings are read on first import of the app; set them before any test module imports it.
os.environ.setdefault("VIDEO_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("VIDEO_TASK_SECRET", "test-task-secret")
os.environ.setdefault("MOCK_MODE", "true")
os.environ.pop("VIDEO_PG_DSN", None)
os.environ.pop("DATABASE_URL", None)

import pytest  # noqa: E402

from tests.fakes import FakeClock, InMemoryVideoJobsRepo, ScriptedProvider  # noqa: E402


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
  return FakeClock()


@pytest.fixture
def repo(clock: FakeClock) -> InMemoryVideoJobsRepo:
  return InMemoryVideoJobsRepo(clock)


@pytest.fixture
def provider() -> ScriptedProvider:
  return ScriptedProvider()
