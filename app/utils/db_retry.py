"""Classification of database failures into transient and permanent ones."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError

from app.bookings.errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Postgres SQLSTATEs worth another attempt: serialization failure, deadlock, admin shutdown.
_RETRYABLE_SQLSTATES = {"40001": "serialization_conflict", "40P01": "deadlock", "57P01": "admin_shutdown"}
_CONNECTIVITY_PATTERNS = ("connection", "timeout", "reset", "network", "broken pipe", "lost connection")


@dataclass(frozen=True)
class DBFailureClassification:
  """Classification result for a database failure."""

  retryable: bool
  reason: str
  sqlstate: str | None
  category: str


def _extract_sqlstate(exc: Exception) -> str | None:
  """Extract the Postgres SQLSTATE from a SQLAlchemy exception."""
  if isinstance(exc, DBAPIError) and exc.orig is not None:
    for attribute in ("sqlstate", "pgcode"):
      value = getattr(exc.orig, attribute, None)
      if value:
        return str(value)
  return None


def classify_db_failure(exc: Exception) -> DBFailureClassification:
  """
  Classify a database failure as retryable or not.

  SQLSTATE is the primary signal; connectivity errors without one are
  recognised from the driver message. Integrity, schema and permission
  errors are permanent.
  """
  sqlstate = _extract_sqlstate(exc)

  if sqlstate in _RETRYABLE_SQLSTATES:
    return DBFailureClassification(retryable=True, reason=f"Transient Postgres failure {sqlstate}", sqlstate=sqlstate, category=_RETRYABLE_SQLSTATES[sqlstate])

  if (sqlstate and sqlstate.startswith("23")) or isinstance(exc, IntegrityError):
    return DBFailureClassification(retryable=False, reason="Integrity constraint violation", sqlstate=sqlstate, category="integrity_error")

  if sqlstate and sqlstate.startswith("42"):
    return DBFailureClassification(retryable=False, reason="Schema/SQL error (undefined table/column, syntax error)", sqlstate=sqlstate, category="schema_error")

  if sqlstate and sqlstate.startswith("28"):
    return DBFailureClassification(retryable=False, reason="Authentication/permission error", sqlstate=sqlstate, category="permission_error")

  if isinstance(exc, (OperationalError, InterfaceError, ConnectionError, OSError)):
    message = str(exc).lower()
    if isinstance(exc, (ConnectionError, OSError)) or any(pattern in message for pattern in _CONNECTIVITY_PATTERNS):
      return DBFailureClassification(retryable=True, reason="Transient connection/network error", sqlstate=sqlstate, category="connectivity_error")
    return DBFailureClassification(retryable=False, reason="Operational error (unknown cause)", sqlstate=sqlstate, category="operational_error_unknown")

  return DBFailureClassification(retryable=False, reason=f"Unknown error type: {type(exc).__name__}", sqlstate=sqlstate, category="unknown_error")


@asynccontextmanager
async def translate_db_errors(operation: str) -> AsyncIterator[None]:
  """Re-raise retryable database failures as TransientError; let the rest propagate."""
  try:
    yield
  except (DBAPIError, ConnectionError, OSError) as exc:
    classification = classify_db_failure(exc)
    if classification.retryable:
      logger.warning("DB operation failed transiently: operation=%s category=%s sqlstate=%s", operation, classification.category, classification.sqlstate or "none")
      raise TransientError(f"{operation} failed: {classification.reason}") from exc
    logger.error("DB operation failed: operation=%s category=%s sqlstate=%s reason=%s", operation, classification.category, classification.sqlstate or "none", classification.reason, exc_info=True)
    raise


async def execute_with_retry(*, operation_name: str, func: Callable[[], Awaitable[T]], max_attempts: int = 2, initial_backoff_ms: int = 100, max_backoff_ms: int = 2000) -> T:
  """
  Run an idempotent read, retrying once on a transient failure.

  Backoff grows exponentially with +/-25% jitter. Non-retryable failures and
  exhausted attempts propagate through translate_db_errors.
  """
  attempt = 0
  while True:
    attempt += 1
    try:
      async with translate_db_errors(operation_name):
        return await func()
    except TransientError:
      if attempt >= max_attempts:
        logger.error("DB operation failed after %d attempts: operation=%s - giving up", max_attempts, operation_name)
        raise

    backoff_ms = min(initial_backoff_ms * (2 ** (attempt - 1)), max_backoff_ms)
    backoff_ms += random.uniform(-backoff_ms * 0.25, backoff_ms * 0.25)
    logger.warning("Retrying DB operation after backoff: operation=%s attempt=%d/%d backoff_ms=%.1f", operation_name, attempt, max_attempts, backoff_ms)
    await asyncio.sleep(backoff_ms / 1000.0)
