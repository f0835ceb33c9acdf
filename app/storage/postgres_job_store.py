"""Postgres-backed job and distance stores using SQLAlchemy."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.bookings.errors import ConflictError, NotFoundError, ValidationError
from app.bookings.models import ActorRole, Distance, Job, JobQuery, JobStatus
from app.schema.bookings import BookingDistanceRow, BookingJobRow
from app.storage.job_store import DistanceStore, JobStore
from app.utils.db_retry import execute_with_retry, translate_db_errors

_MUTABLE_COLUMNS = (
  "status",
  "from_language",
  "to_language",
  "due_at",
  "duration_minutes",
  "on_site",
  "town",
  "immediate",
  "required_gender",
  "certified_only",
  "instructions",
  "user_email",
  "translator_id",
  "candidate_ids",
  "declined_ids",
  "excluded_ids",
  "offer_round",
  "offered_at",
  "offer_dispatched_at",
  "accepted_at",
  "started_at",
  "ended_at",
  "cancelled_at",
  "cancelled_by",
  "customer_not_call",
  "admin_comments",
  "flagged",
  "manually_handled",
  "by_admin",
  "session_time",
  "updated_at",
)


def _job_to_values(job: Job) -> dict[str, object]:
  values: dict[str, object] = {column: getattr(job, column) for column in _MUTABLE_COLUMNS}
  values["status"] = job.status.value
  values["cancelled_by"] = job.cancelled_by.value if job.cancelled_by else None
  values["candidate_ids"] = list(job.candidate_ids)
  values["declined_ids"] = list(job.declined_ids)
  values["excluded_ids"] = list(job.excluded_ids)
  return values


def _row_to_job(row: BookingJobRow) -> Job:
  return Job(
    job_id=row.job_id,
    customer_id=row.customer_id,
    status=JobStatus(row.status),
    from_language=row.from_language,
    to_language=row.to_language,
    due_at=row.due_at,
    duration_minutes=row.duration_minutes,
    created_at=row.created_at,
    updated_at=row.updated_at,
    on_site=row.on_site,
    town=row.town,
    immediate=row.immediate,
    required_gender=row.required_gender,
    certified_only=row.certified_only,
    instructions=row.instructions,
    user_email=row.user_email,
    translator_id=row.translator_id,
    candidate_ids=tuple(row.candidate_ids or ()),
    declined_ids=tuple(row.declined_ids or ()),
    excluded_ids=tuple(row.excluded_ids or ()),
    offer_round=row.offer_round,
    offered_at=row.offered_at,
    offer_dispatched_at=row.offer_dispatched_at,
    accepted_at=row.accepted_at,
    started_at=row.started_at,
    ended_at=row.ended_at,
    cancelled_at=row.cancelled_at,
    cancelled_by=ActorRole(row.cancelled_by) if row.cancelled_by else None,
    customer_not_call=row.customer_not_call,
    admin_comments=row.admin_comments,
    flagged=row.flagged,
    manually_handled=row.manually_handled,
    by_admin=row.by_admin,
    session_time=row.session_time,
    version=row.version,
  )


class PostgresJobStore(JobStore):
  """Persist booking jobs to Postgres with a version compare-and-swap on save."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
    self._session_factory = session_factory

  async def create(self, job: Job) -> Job:
    values = _job_to_values(job)
    values.update(job_id=job.job_id, customer_id=job.customer_id, created_at=job.created_at, version=1)
    try:
      async with translate_db_errors("job create"), self._session_factory() as session:
        row = BookingJobRow(**values)
        session.add(row)
        await session.commit()
        return _row_to_job(row)
    except IntegrityError as exc:
      raise ValidationError(f"Job {job.job_id} could not be stored: unknown customer or duplicate id.") from exc

  async def get(self, job_id: str) -> Job | None:
    async def _load() -> Job | None:
      async with self._session_factory() as session:
        row = await session.get(BookingJobRow, job_id)
        return _row_to_job(row) if row is not None else None

    return await execute_with_retry(operation_name="job lookup", func=_load)

  async def save(self, job: Job, *, expected_version: int) -> Job:
    values = _job_to_values(job)
    values["version"] = expected_version + 1
    statement = update(BookingJobRow).where(BookingJobRow.job_id == job.job_id, BookingJobRow.version == expected_version).values(**values).returning(BookingJobRow).execution_options(synchronize_session=False)

    async with translate_db_errors("job save"), self._session_factory() as session:
      row = (await session.execute(statement)).scalar_one_or_none()
      if row is None:
        current = await session.scalar(select(BookingJobRow.version).where(BookingJobRow.job_id == job.job_id))
        await session.rollback()
        if current is None:
          raise NotFoundError("job", job.job_id)
        raise ConflictError(job.job_id, f"stale version {expected_version}, stored version is {current}")
      saved = _row_to_job(row)
      await session.commit()
      return saved

  async def query(self, query: JobQuery) -> list[Job]:
    statement = select(BookingJobRow)
    if query.statuses is not None:
      statement = statement.where(BookingJobRow.status.in_([status.value for status in query.statuses]))
    if query.customer_id is not None:
      statement = statement.where(BookingJobRow.customer_id == query.customer_id)
    if query.translator_id is not None:
      statement = statement.where(BookingJobRow.translator_id == query.translator_id)
    if query.candidate_id is not None:
      statement = statement.where(BookingJobRow.candidate_ids.any(query.candidate_id))
    if query.newest_first:
      statement = statement.order_by(BookingJobRow.created_at.desc(), BookingJobRow.job_id.desc())
    else:
      statement = statement.order_by(BookingJobRow.due_at.asc(), BookingJobRow.job_id.asc())
    statement = statement.limit(query.limit).offset(query.offset)

    async def _run() -> list[Job]:
      async with self._session_factory() as session:
        rows = (await session.scalars(statement)).all()
        return [_row_to_job(row) for row in rows]

    return await execute_with_retry(operation_name="job query", func=_run)


class PostgresDistanceStore(DistanceStore):
  """Persist per-job distance/time metrics."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
    self._session_factory = session_factory

  async def get(self, job_id: str) -> Distance | None:
    async def _load() -> Distance | None:
      async with self._session_factory() as session:
        row = await session.get(BookingDistanceRow, job_id)
        return Distance(job_id=row.job_id, distance=row.distance, time=row.time) if row is not None else None

    return await execute_with_retry(operation_name="distance lookup", func=_load)

  async def save(self, distance: Distance) -> Distance:
    statement = insert(BookingDistanceRow).values(job_id=distance.job_id, distance=distance.distance, time=distance.time)
    statement = statement.on_conflict_do_update(index_elements=[BookingDistanceRow.job_id], set_={"distance": statement.excluded.distance, "time": statement.excluded.time})
    async with translate_db_errors("distance save"), self._session_factory() as session:
      await session.execute(statement)
      await session.commit()
    return distance
