"""Read-side views over booking jobs."""

from __future__ import annotations

from app.bookings.errors import ForbiddenError, NotFoundError, ValidationError
from app.bookings.models import ACTIVE_STATUSES, HISTORY_STATUSES, Actor, ActorRole, Job, JobQuery, JobStatus
from app.storage.job_store import JobStore
from app.utils.timeouts import bounded

_MAX_PAGE_SIZE = 200
_TRANSLATOR_ACTIVE = frozenset({JobStatus.ACCEPTED, JobStatus.IN_PROGRESS})


def _check_page(limit: int, offset: int) -> None:
  if limit < 1 or limit > _MAX_PAGE_SIZE:
    raise ValidationError(f"limit must be between 1 and {_MAX_PAGE_SIZE}.")
  if offset < 0:
    raise ValidationError("offset must be non-negative.")


class JobQueries:
  """Lookups for jobs by id, by owner and by assignee."""

  def __init__(self, *, job_store: JobStore, store_timeout_seconds: float) -> None:
    self._job_store = job_store
    self._store_timeout_seconds = store_timeout_seconds

  async def get_job(self, job_id: str) -> Job:
    job = await bounded(self._job_store.get(job_id), timeout_seconds=self._store_timeout_seconds, operation="job lookup")
    if job is None:
      raise NotFoundError("job", job_id)
    return job

  async def list_jobs(self, actor: Actor, query: JobQuery) -> list[Job]:
    """Filtered listing across all customers. Admins only."""
    if not actor.is_privileged:
      raise ForbiddenError("Only admins can list all jobs.")
    _check_page(query.limit, query.offset)
    return await self._query(query)

  async def users_jobs(self, actor: Actor) -> list[Job]:
    """Active jobs for the acting user: owned jobs for customers, assigned jobs for translators."""
    if actor.role == ActorRole.CUSTOMER:
      query = JobQuery(statuses=ACTIVE_STATUSES, customer_id=actor.actor_id, limit=_MAX_PAGE_SIZE)
    elif actor.role == ActorRole.TRANSLATOR:
      query = JobQuery(statuses=_TRANSLATOR_ACTIVE, translator_id=actor.actor_id, limit=_MAX_PAGE_SIZE)
    else:
      query = JobQuery(statuses=ACTIVE_STATUSES, limit=_MAX_PAGE_SIZE)
    return await self._query(query)

  async def users_jobs_history(self, user_id: str, role: ActorRole, *, limit: int = 15, offset: int = 0) -> list[Job]:
    """Completed and cancelled jobs for one user, newest first."""
    if not user_id:
      raise ValidationError("user_id is required.")
    _check_page(limit, offset)
    if role == ActorRole.CUSTOMER:
      query = JobQuery(statuses=HISTORY_STATUSES, customer_id=user_id, limit=limit, offset=offset, newest_first=True)
    elif role == ActorRole.TRANSLATOR:
      # Cancelled jobs drop their assignee, so a translator's history holds completed work.
      query = JobQuery(statuses=frozenset({JobStatus.COMPLETED}), translator_id=user_id, limit=limit, offset=offset, newest_first=True)
    else:
      raise ValidationError(f"Job history is kept per customer or translator, not {role.value}.")
    return await self._query(query)

  async def _query(self, query: JobQuery) -> list[Job]:
    return await bounded(self._job_store.query(query), timeout_seconds=self._store_timeout_seconds, operation="job query")
