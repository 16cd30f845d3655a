"""Caller authentication for internal callers: the scheduler and the web gateway."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


class CallerRole(str, Enum):
  PROFESSOR = "professor"
  STUDENT = "student"


@dataclass(frozen=True)
class Caller:
  """Authenticated end user as forwarded by the gateway."""

  id: str
  role: CallerRole


def require_task_secret(
  settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None), x_video_task_secret: str | None = Header(default=None)
) -> None:
  """Reject callers that do not present the shared task secret."""
  # Secure-by-default: without a configured secret no internal call is accepted.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  expected_auth = f"Bearer {settings.task_secret}"
  shared_secret_valid = secrets.compare_digest(x_video_task_secret or "", settings.task_secret)
  bearer_valid = secrets.compare_digest(authorization or "", expected_auth)
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Rejected internal call with missing or invalid task secret")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")


def get_current_caller(
  _: Annotated[None, Depends(require_task_secret)], x_caller_id: str | None = Header(default=None), x_caller_role: str | None = Header(default=None)
) -> Caller:
  """Resolve the end user the gateway authenticated.

  Identity headers are only trusted on requests that also carry the task secret.
  """
  caller_id = (x_caller_id or "").strip()
  if not caller_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
  try:
    role = CallerRole((x_caller_role or "").strip().lower())
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown caller role.") from exc
  return Caller(id=caller_id, role=role)


def require_professor(caller: Annotated[Caller, Depends(get_current_caller)]) -> Caller:
  """Only professors can request video generation."""
  if caller.role != CallerRole.PROFESSOR:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only professors can generate videos")
  return caller
