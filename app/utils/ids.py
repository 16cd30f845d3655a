"""Identifier utilities."""

from __future__ import annotations

import secrets
import uuid


def generate_claim_token() -> str:
  """Return a fresh token identifying one sweep's submission lease."""
  return uuid.uuid4().hex


def generate_request_id() -> str:
  """Return a short id used to correlate log lines for one HTTP request."""
  return secrets.token_hex(8)
