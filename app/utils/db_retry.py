"""Classify database failures as transient or permanent for logging and retry decisions."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError

# SQLSTATEs that clear up on their own: serialization failure, deadlock, admin shutdown, cannot connect now.
_RETRYABLE_SQLSTATES = {"40001", "40P01", "57P01", "57P03"}
_CONNECTIVITY_PATTERNS = ("connection", "timeout", "timed out", "reset", "network", "broken pipe", "closed")


@dataclass(frozen=True)
class DBFailureClassification:
  """Classification result for a database failure."""

  retryable: bool
  reason: str
  sqlstate: str | None
  category: str


def _extract_sqlstate(exc: BaseException) -> str | None:
  """Pull the Postgres SQLSTATE out of a SQLAlchemy-wrapped driver error."""
  if not isinstance(exc, DBAPIError):
    return None
  # asyncpg errors sit behind the SQLAlchemy adapter; check both layers.
  for candidate in (exc.orig, getattr(exc.orig, "__cause__", None)):
    sqlstate = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
    if sqlstate:
      return str(sqlstate)
  return None


def classify_db_failure(exc: BaseException) -> DBFailureClassification:
  """Classify a database failure, SQLSTATE first and exception type as fallback."""
  sqlstate = _extract_sqlstate(exc)

  if sqlstate in _RETRYABLE_SQLSTATES:
    return DBFailureClassification(retryable=True, reason="Transient transaction or server state", sqlstate=sqlstate, category="transient_sqlstate")

  if sqlstate and sqlstate.startswith("08"):
    return DBFailureClassification(retryable=True, reason="Connection exception", sqlstate=sqlstate, category="connectivity_error")

  if (sqlstate and sqlstate.startswith("23")) or isinstance(exc, IntegrityError):
    return DBFailureClassification(retryable=False, reason="Integrity constraint violation", sqlstate=sqlstate, category="integrity_error")

  if sqlstate and sqlstate.startswith("42"):
    return DBFailureClassification(retryable=False, reason="Schema/SQL error (undefined table/column, syntax error)", sqlstate=sqlstate, category="schema_error")

  if sqlstate and sqlstate.startswith("28"):
    return DBFailureClassification(retryable=False, reason="Authentication/permission error", sqlstate=sqlstate, category="permission_error")

  if isinstance(exc, (OSError, InterfaceError)):
    return DBFailureClassification(retryable=True, reason=f"Connectivity failure: {type(exc).__name__}", sqlstate=sqlstate, category="connectivity_error")

  if isinstance(exc, OperationalError):
    message = str(exc).lower()
    if any(pattern in message for pattern in _CONNECTIVITY_PATTERNS):
      return DBFailureClassification(retryable=True, reason="Transient connection/network error", sqlstate=sqlstate, category="connectivity_error")
    return DBFailureClassification(retryable=False, reason="Operational error (unknown cause)", sqlstate=sqlstate, category="operational_error_unknown")

  return DBFailureClassification(retryable=False, reason=f"Unknown error type: {type(exc).__name__}", sqlstate=sqlstate, category="unknown_error")
