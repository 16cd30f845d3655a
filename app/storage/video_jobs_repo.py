"""Storage interface for escalation video generation records."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from app.video.models import GenerationRecord, GenerationStatus


class VideoJobsRepository(Protocol):
  """Repository contract for generation records.

  `try_transition` is the only way an existing record changes. Every write is
  conditional on the stored status so overlapping sweeps cannot clobber each other.
  """

  async def find_not_submitted(self, limit: int) -> list[GenerationRecord]:
    """Return records with no provider job yet, oldest first."""

  async def find_in_flight(self, limit: int) -> list[GenerationRecord]:
    """Return submitted records still waiting on the provider, oldest submission first."""

  async def try_transition(
    self,
    record_id: str,
    expected_status: GenerationStatus,
    changes: Mapping[str, Any],
    *,
    lease_free_at: datetime | None = None,
    claim_token: str | None = None,
  ) -> bool:
    """Apply `changes` only if the stored status still equals `expected_status`.

    `lease_free_at` additionally requires that no submission lease is live at that
    instant; `claim_token` requires that the caller holds the lease. Returns whether
    the write took effect.
    """

  async def get(self, record_id: str) -> GenerationRecord | None:
    """Fetch one record by escalation id."""

  async def create(self, record: GenerationRecord) -> bool:
    """Insert a record unless one already exists. Returns whether it was inserted."""
