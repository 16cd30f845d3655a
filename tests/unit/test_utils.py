"""Unit tests for shared helpers."""

from __future__ import annotations

import logging
import os
from types import SimpleNamespace

from sqlalchemy.exc import IntegrityError, OperationalError

from app.config import get_settings
from app.core.logging import _rotated_name, setup_logging
from app.utils.db_retry import classify_db_failure
from app.utils.env import load_env_file


def test_classify_db_failure_uses_sqlstate() -> None:
  serialization = OperationalError("UPDATE video_generation_jobs", {}, SimpleNamespace(sqlstate="40001"))
  result = classify_db_failure(serialization)
  assert result.retryable is True
  assert result.category == "transient_sqlstate"


def test_classify_db_failure_falls_back_to_type() -> None:
  assert classify_db_failure(ConnectionRefusedError()).category == "connectivity_error"
  assert classify_db_failure(IntegrityError("INSERT", {}, Exception("duplicate key"))).retryable is False
  assert classify_db_failure(OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))).retryable is True


def test_load_env_file_keeps_existing_values(tmp_path, monkeypatch) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text("# comment\nexport VIDEO_TEST_A='quoted'\nVIDEO_TEST_B=from-file\nnot a pair\n", encoding="utf-8")
  monkeypatch.delenv("VIDEO_TEST_A", raising=False)
  monkeypatch.setenv("VIDEO_TEST_B", "from-env")

  load_env_file(env_file)

  assert os.environ["VIDEO_TEST_A"] == "quoted"
  assert os.environ["VIDEO_TEST_B"] == "from-env"
  monkeypatch.delenv("VIDEO_TEST_A")


def test_setup_logging_writes_to_rotating_file(tmp_path) -> None:
  root = logging.getLogger()
  previous_handlers, previous_level = root.handlers[:], root.level
  try:
    log_path = setup_logging(get_settings(), tmp_path)
    logging.getLogger("app.video.sweep").info("sweep finished")
    for handler in root.handlers:
      handler.flush()
    assert log_path.parent == tmp_path
    assert "sweep finished" in log_path.read_text(encoding="utf-8")
  finally:
    for handler in root.handlers:
      handler.close()
    root.handlers = previous_handlers
    root.setLevel(previous_level)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
      logging.getLogger(name).handlers = []
      logging.getLogger(name).propagate = True


def test_rotated_file_names() -> None:
  assert _rotated_name("logs/video_engine_1.log.2") == "logs/video_engine_1.log-2"
  assert _rotated_name("logs/video_engine_1.log") == "logs/video_engine_1.log"
