from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from app.bookings.commands import AdminFields, DistanceFeed, JobSpec
from app.bookings.errors import NotFoundError
from app.bookings.models import Distance


async def _completed_job(harness):
  spec = JobSpec(from_language="en", to_language="de", due_at=datetime(2026, 3, 5, 14, 0, tzinfo=UTC), duration_minutes=60, on_site=True, town="Stockholm")
  job = await harness.engine.create("C1", spec)
  await harness.engine.accept(job.job_id, "T1")
  return await harness.engine.end(job.job_id)


@pytest.mark.anyio
async def test_feed_writes_metrics_and_annotations(harness):
  job = await _completed_job(harness)

  result = await harness.reconciler.apply_feed(DistanceFeed(job_id=job.job_id, distance="12 km", time="25", admin=AdminFields(admin_comment="Parking fee added", flagged=True, session_time="01:10:00")))

  assert result.distance.status == "updated"
  assert result.admin.status == "updated"
  stored = await harness.job_store.get(job.job_id)
  assert stored.admin_comments == "Parking fee added"
  assert stored.flagged
  assert stored.session_time == "01:10:00"
  assert not stored.manually_handled
  assert await harness.distance_store.get(job.job_id) == Distance(job_id=job.job_id, distance="12 km", time="25")


@pytest.mark.anyio
async def test_time_only_feed_keeps_recorded_distance(harness):
  job = await _completed_job(harness)
  await harness.distance_store.save(Distance(job_id=job.job_id, distance="12 km", time="25"))

  result = await harness.reconciler.apply_feed(DistanceFeed(job_id=job.job_id, time="40"))

  assert result.distance.status == "updated"
  assert result.admin.status == "skipped"
  assert await harness.distance_store.get(job.job_id) == Distance(job_id=job.job_id, distance="12 km", time="40")


@pytest.mark.anyio
@pytest.mark.parametrize(
  ("flagged", "comment", "expected_flag", "expected_comment"),
  [
    (True, "Customer disputed the time", True, "Customer disputed the time"),
    (True, None, False, ""),
    (True, "   ", False, ""),
    (False, "Customer disputed the time", False, "Customer disputed the time"),
    (None, "Customer disputed the time", False, "Customer disputed the time"),
  ],
)
async def test_flag_needs_flag_and_comment(harness, flagged, comment, expected_flag, expected_comment):
  job = await _completed_job(harness)

  result = await harness.reconciler.apply_feed(DistanceFeed(job_id=job.job_id, admin=AdminFields(admin_comment=comment, flagged=flagged, manually_handled=True)))

  assert result.admin.status == "updated"
  stored = await harness.job_store.get(job.job_id)
  assert stored.flagged is expected_flag
  assert stored.admin_comments == expected_comment
  assert stored.manually_handled



@pytest.mark.anyio
async def test_empty_admin_inputs_leave_job_untouched(harness):
  job = await _completed_job(harness)
  before = await harness.job_store.get(job.job_id)

  result = await harness.reconciler.apply_feed(DistanceFeed(job_id=job.job_id, distance="3 km", admin=AdminFields(admin_comment=" ", session_time="")))

  assert result.admin.status == "skipped"
  after = await harness.job_store.get(job.job_id)
  assert after.version == before.version
  assert after.session_time == before.session_time


@pytest.mark.anyio
async def test_admin_write_replaces_every_admin_field(harness):
  job = await _completed_job(harness)
  await harness.reconciler.apply_feed(DistanceFeed(job_id=job.job_id, admin=AdminFields(admin_comment="Parking fee added", flagged=True, session_time="01:10:00")))

  await harness.reconciler.apply_feed(DistanceFeed(job_id=job.job_id, admin=AdminFields(by_admin=True)))

  stored = await harness.job_store.get(job.job_id)
  assert stored.by_admin
  assert stored.admin_comments == ""
  assert not stored.flagged
  assert stored.session_time is None



@pytest.mark.anyio
async def test_distance_failure_does_not_block_admin_write(harness):
  job = await _completed_job(harness)
  harness.distance_store.save = AsyncMock(side_effect=RuntimeError("disk full"))

  result = await harness.reconciler.apply_feed(DistanceFeed(job_id=job.job_id, distance="12 km", admin=AdminFields(admin_comment="checked")))

  assert result.distance.status == "error"
  assert result.distance.error == "disk full"
  assert result.admin.status == "updated"
  assert (await harness.job_store.get(job.job_id)).admin_comments == "checked"


@pytest.mark.anyio
async def test_admin_failure_does_not_block_distance_write(harness):
  job = await _completed_job(harness)
  harness.job_store.save = AsyncMock(side_effect=RuntimeError("constraint violated"))

  result = await harness.reconciler.apply_feed(DistanceFeed(job_id=job.job_id, distance="12 km", admin=AdminFields(admin_comment="checked")))

  assert result.distance.status == "updated"
  assert result.admin.status == "error"
  assert (await harness.distance_store.get(job.job_id)).distance == "12 km"


@pytest.mark.anyio
async def test_feed_for_unknown_job(harness):
  with pytest.raises(NotFoundError):
    await harness.reconciler.apply_feed(DistanceFeed(job_id="missing", distance="1 km"))
