"""Distance/time metrics and admin annotations fed in after a job."""

from __future__ import annotations

import logging

from app.bookings.commands import AdminFields, DistanceFeed
from app.bookings.errors import NotFoundError
from app.bookings.locks import JobLocks
from app.bookings.models import Distance, FeedPartResult, FeedResult, Job
from app.storage.job_store import DistanceStore, JobStore
from app.utils.timeouts import bounded

logger = logging.getLogger(__name__)

_UPDATED = FeedPartResult(status="updated")
_SKIPPED = FeedPartResult(status="skipped")


class DistanceReconciler:
  """Applies distance feeds. The metrics write and the admin write succeed or fail independently."""

  def __init__(self, *, job_store: JobStore, distance_store: DistanceStore, locks: JobLocks, store_timeout_seconds: float) -> None:
    self._job_store = job_store
    self._distance_store = distance_store
    self._locks = locks
    self._store_timeout_seconds = store_timeout_seconds

  async def apply_feed(self, feed: DistanceFeed) -> FeedResult:
    async with self._locks.hold(feed.job_id):
      job = await bounded(self._job_store.get(feed.job_id), timeout_seconds=self._store_timeout_seconds, operation="job lookup")
      if job is None:
        raise NotFoundError("job", feed.job_id)

      distance_part = _SKIPPED
      if feed.has_metrics:
        try:
          await self._write_distance(feed)
          distance_part = _UPDATED
        except Exception as exc:  # noqa: BLE001
          logger.error("Distance write failed job_id=%s error=%s", feed.job_id, exc, exc_info=True)
          distance_part = FeedPartResult(status="error", error=str(exc) or type(exc).__name__)

      admin_part = _SKIPPED
      if not feed.admin.is_empty:
        try:
          await self._write_admin(job, feed.admin)
          admin_part = _UPDATED
        except Exception as exc:  # noqa: BLE001
          logger.error("Admin annotation write failed job_id=%s error=%s", feed.job_id, exc, exc_info=True)
          admin_part = FeedPartResult(status="error", error=str(exc) or type(exc).__name__)

    logger.info("Distance feed applied job_id=%s distance=%s admin=%s", feed.job_id, distance_part.status, admin_part.status)
    return FeedResult(job_id=feed.job_id, distance=distance_part, admin=admin_part)

  async def _write_distance(self, feed: DistanceFeed) -> None:
    current = await bounded(self._distance_store.get(feed.job_id), timeout_seconds=self._store_timeout_seconds, operation="distance lookup")
    record = current or Distance(job_id=feed.job_id)
    if feed.distance is not None:
      record.distance = feed.distance
    if feed.time is not None:
      record.time = feed.time
    await bounded(self._distance_store.save(record), timeout_seconds=self._store_timeout_seconds, operation="distance save")

  async def _write_admin(self, job: Job, admin: AdminFields) -> None:
    # The admin fields are written as one set; anything not supplied is cleared.
    expected = job.version
    job.admin_comments = admin.admin_comment or ""
    job.flagged = admin.effective_flagged
    job.manually_handled = bool(admin.manually_handled)
    job.by_admin = bool(admin.by_admin)
    job.session_time = admin.session_time
    await bounded(self._job_store.save(job, expected_version=expected), timeout_seconds=self._store_timeout_seconds, operation="job save")
