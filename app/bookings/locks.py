"""Per-job mutual exclusion for lifecycle transitions and reconciliation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from app.bookings.errors import TransientError

logger = logging.getLogger(__name__)


class JobLocks:
  """Keyed asyncio locks; one writer per job id, different jobs run freely.

  Entries are dropped once no coroutine holds or waits on them, so the map
  only grows with the number of jobs in flight.
  """

  def __init__(self, *, acquire_timeout_seconds: float) -> None:
    self._acquire_timeout_seconds = acquire_timeout_seconds
    self._locks: dict[str, asyncio.Lock] = {}
    self._users: dict[str, int] = {}

  @asynccontextmanager
  async def hold(self, job_id: str) -> AsyncIterator[None]:
    """Hold the lock for job_id, raising TransientError if it cannot be taken in time."""
    lock = self._locks.setdefault(job_id, asyncio.Lock())
    self._users[job_id] = self._users.get(job_id, 0) + 1
    try:
      try:
        await asyncio.wait_for(lock.acquire(), timeout=self._acquire_timeout_seconds)
      except TimeoutError as exc:
        logger.warning("Timed out waiting for job lock job_id=%s timeout=%s", job_id, self._acquire_timeout_seconds)
        raise TransientError(f"Job {job_id} is busy; retry later") from exc

      try:
        yield
      finally:
        lock.release()
    finally:
      remaining = self._users[job_id] - 1
      if remaining:
        self._users[job_id] = remaining
      else:
        del self._users[job_id]
        del self._locks[job_id]

  def __len__(self) -> int:
    return len(self._locks)
