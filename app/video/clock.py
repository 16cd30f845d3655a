"""Time sources and the per-sweep execution budget."""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
  def now(self) -> datetime:
    """Wall-clock time in UTC, used for stored timestamps and leases."""

  def monotonic(self) -> float:
    """Monotonic seconds, used for budget accounting."""


class SystemClock:
  def now(self) -> datetime:
    return datetime.now(UTC)

  def monotonic(self) -> float:
    return time.monotonic()


class SweepBudget:
  """Wall-clock ceiling for one sweep.

  A record is only started while at least `reserve_seconds` remain, so the
  record in progress can finish before the ceiling.
  """

  def __init__(self, clock: Clock, *, ceiling_seconds: float, reserve_seconds: float) -> None:
    if reserve_seconds >= ceiling_seconds:
      raise ValueError("reserve_seconds must be smaller than ceiling_seconds")
    self._clock = clock
    self._ceiling_seconds = ceiling_seconds
    self._reserve_seconds = reserve_seconds
    self._started_at = clock.monotonic()

  @property
  def elapsed_seconds(self) -> float:
    return self._clock.monotonic() - self._started_at

  @property
  def remaining_seconds(self) -> float:
    return self._ceiling_seconds - self.elapsed_seconds

  def allows_another_record(self) -> bool:
    return self.remaining_seconds >= self._reserve_seconds
