"""
Job lifecycle engine.

Owns every status change of a booking. Each mutation runs under the job's
lock and is written with a version check, so two writers can never both win.
Offers are dispatched while the lock is still held and stamped with
offer_dispatched_at; accept refuses an offer that has not been sent yet.
Notifications after a transition are best-effort and never undo it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from app.bookings.commands import JobSpec, JobUpdate, require_email
from app.bookings.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.bookings.locks import JobLocks
from app.bookings.matcher import TranslatorMatcher
from app.bookings.models import ACTIVE_STATUSES, ASSIGNED_STATUSES, Actor, ActorRole, Job, JobStatus
from app.bookings.state import check_assignment, require_status, validate_transition
from app.notifications.contracts import EventKind
from app.notifications.dispatcher import NotificationDispatcher
from app.storage.job_store import CustomerDirectory, JobStore, TranslatorDirectory
from app.utils.ids import generate_job_id
from app.utils.timeouts import bounded

logger = logging.getLogger(__name__)

_EDITABLE_STATUSES = frozenset({JobStatus.CREATED, JobStatus.OFFERED})
_NO_SHOW_STATUSES = frozenset({JobStatus.ACCEPTED, JobStatus.IN_PROGRESS})
_DECLINABLE_STATUSES = frozenset({JobStatus.OFFERED})


def _utcnow() -> datetime:
  return datetime.now(UTC)


def _format_session(elapsed: timedelta) -> str:
  total_seconds = max(int(elapsed.total_seconds()), 0)
  hours, remainder = divmod(total_seconds, 3600)
  minutes, seconds = divmod(remainder, 60)
  return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class OfferPolicy:
  """How long an unanswered offer stands before assign() re-offers it."""

  window: timedelta

  def due_for_reoffer(self, job: Job, now: datetime) -> bool:
    if job.offered_at is None:
      return True
    return now - job.offered_at >= self.window


class JobLifecycleEngine:
  """Applies validated lifecycle transitions and fans out the resulting events."""

  def __init__(
    self,
    *,
    job_store: JobStore,
    translators: TranslatorDirectory,
    customers: CustomerDirectory,
    matcher: TranslatorMatcher,
    dispatcher: NotificationDispatcher,
    locks: JobLocks,
    offer_policy: OfferPolicy,
    store_timeout_seconds: float,
    clock: Callable[[], datetime] | None = None,
  ) -> None:
    self._job_store = job_store
    self._translators = translators
    self._customers = customers
    self._matcher = matcher
    self._dispatcher = dispatcher
    self._locks = locks
    self._offer_policy = offer_policy
    self._store_timeout_seconds = store_timeout_seconds
    self._clock = clock or _utcnow

  async def create(self, customer_id: str, spec: JobSpec) -> Job:
    """Persist a new booking and offer it to the matching translators. Immediate bookings get an emailed confirmation."""
    if not customer_id or not customer_id.strip():
      raise ValidationError("customer_id is required.")
    customer = await bounded(self._customers.get_customer(customer_id), timeout_seconds=self._store_timeout_seconds, operation="customer lookup")
    if customer is None:
      raise NotFoundError("customer", customer_id)

    now = self._clock()
    job = Job(
      job_id=generate_job_id(),
      customer_id=customer_id,
      status=JobStatus.CREATED,
      from_language=spec.from_language,
      to_language=spec.to_language,
      due_at=spec.due_at,
      duration_minutes=spec.duration_minutes,
      on_site=spec.on_site,
      town=spec.town,
      immediate=spec.immediate,
      required_gender=spec.required_gender,
      certified_only=spec.certified_only,
      instructions=spec.instructions,
      user_email=spec.user_email,
      created_at=now,
      updated_at=now,
    )

    async with self._locks.hold(job.job_id):
      job = await bounded(self._job_store.create(job), timeout_seconds=self._store_timeout_seconds, operation="job create")
      logger.info("Job created job_id=%s customer_id=%s pair=%s>%s", job.job_id, customer_id, job.from_language, job.to_language)
      job = await self._offer(job, EventKind.OFFER)

    if job.immediate:
      await self._notify(job, EventKind.CONFIRMATION, include_customer=True)
    return job

  async def assign(self, job_id: str) -> Job:
    """Offer a created job, or re-offer an offered one once the offer window has passed."""
    async with self._locks.hold(job_id):
      job = await self._load(job_id)
      if job.status == JobStatus.OFFERED and not self._offer_policy.due_for_reoffer(job, self._clock()):
        logger.info("Offer still within window job_id=%s round=%d", job_id, job.offer_round)
        return job
      kind = EventKind.REOFFER if job.status == JobStatus.OFFERED else EventKind.OFFER
      return await self._offer(job, kind)

  async def accept(self, job_id: str, translator_id: str) -> Job:
    """Bind a candidate translator to an offered job. At most one accept ever wins."""
    await self._require_translator(translator_id)
    return await self._accept(job_id, translator_id, check_candidates=True)

  async def accept_by_id(self, job_id: str, actor: Actor, translator_id: str | None = None) -> Job:
    """Accept on behalf of a translator; privileged actors skip the candidate check."""
    if actor.is_privileged:
      if not translator_id:
        raise ValidationError("translator_id is required when an admin accepts a job.")
      check_candidates = False
    elif actor.role == ActorRole.TRANSLATOR:
      if translator_id and translator_id != actor.actor_id:
        raise ForbiddenError("Translators can only accept jobs for themselves.")
      translator_id = actor.actor_id
      check_candidates = True
    else:
      raise ForbiddenError(f"Role {actor.role.value} cannot accept jobs.")

    await self._require_translator(translator_id)
    return await self._accept(job_id, translator_id, check_candidates=check_candidates)

  async def decline(self, job_id: str, translator_id: str) -> Job:
    """Record an explicit decline so the translator drops out of this job's offers."""
    async with self._locks.hold(job_id):
      job = await self._load(job_id)
      require_status(job, _DECLINABLE_STATUSES, "declined")
      if translator_id not in job.candidate_ids:
        raise ConflictError(job_id, f"translator {translator_id} is not a candidate for the current offer")
      expected = job.version
      job.candidate_ids = tuple(candidate for candidate in job.candidate_ids if candidate != translator_id)
      job.declined_ids = (*job.declined_ids, translator_id)
      job = await self._save(job, expected)
      logger.info("Offer declined job_id=%s translator_id=%s remaining=%d", job_id, translator_id, len(job.candidate_ids))
      return job

  async def start(self, job_id: str, actor: Actor) -> Job:
    """Mark an accepted job as in progress."""
    async with self._locks.hold(job_id):
      job = await self._load(job_id)
      validate_transition(job, JobStatus.IN_PROGRESS)
      if not actor.is_privileged and not (actor.role == ActorRole.TRANSLATOR and actor.actor_id == job.translator_id):
        raise ForbiddenError("Only the assigned translator can start this job.")
      expected = job.version
      job.status = JobStatus.IN_PROGRESS
      job.started_at = self._clock()
      job = await self._save(job, expected)
      logger.info("Job started job_id=%s translator_id=%s", job_id, job.translator_id)
      return job

  async def cancel(self, job_id: str, actor: Actor) -> Job:
    """Cancel a job on behalf of a customer, translator or admin. Repeats are no-ops."""
    async with self._locks.hold(job_id):
      job = await self._load(job_id)
      if actor.role == ActorRole.CUSTOMER and actor.actor_id != job.customer_id:
        raise ForbiddenError("Customers can only cancel their own jobs.")
      if job.status == JobStatus.CANCELLED:
        logger.info("Cancel ignored; job already cancelled job_id=%s", job_id)
        return job
      if actor.role == ActorRole.TRANSLATOR and actor.actor_id != job.translator_id:
        raise ForbiddenError("Translators can only cancel jobs assigned to them.")
      validate_transition(job, JobStatus.CANCELLED)

      previous_translator = job.translator_id
      offered_to = job.candidate_ids
      expected = job.version
      job.status = JobStatus.CANCELLED
      job.cancelled_at = self._clock()
      job.cancelled_by = actor.role
      job.translator_id = None
      if actor.role == ActorRole.TRANSLATOR:
        job.excluded_ids = (*job.excluded_ids, actor.actor_id)
      job = await self._save(job, expected)
      logger.info("Job cancelled job_id=%s by=%s previous_translator=%s", job_id, actor.role.value, previous_translator)

    translator_side = (previous_translator,) if previous_translator else offered_to
    if actor.role == ActorRole.CUSTOMER:
      await self._notify(job, EventKind.CANCELLED, translator_ids=translator_side)
    elif actor.role == ActorRole.TRANSLATOR:
      await self._notify(job, EventKind.CANCELLED, include_customer=True)
    else:
      await self._notify(job, EventKind.CANCELLED, translator_ids=translator_side, include_customer=True)
    return job

  async def end(self, job_id: str) -> Job:
    """Complete an accepted or in-progress job."""
    async with self._locks.hold(job_id):
      job = await self._load(job_id)
      validate_transition(job, JobStatus.COMPLETED)
      expected = job.version
      now = self._clock()
      job.status = JobStatus.COMPLETED
      job.ended_at = now
      if job.started_at is not None:
        job.session_time = _format_session(now - job.started_at)
      job = await self._save(job, expected)
      logger.info("Job completed job_id=%s translator_id=%s session_time=%s", job_id, job.translator_id, job.session_time)

    await self._notify(job, EventKind.ENDED, translator_ids=(job.translator_id,) if job.translator_id else (), include_customer=True)
    return job

  async def customer_not_call(self, job_id: str) -> Job:
    """Annotate a customer no-show. Cancellation is left to an explicit cancel()."""
    async with self._locks.hold(job_id):
      job = await self._load(job_id)
      require_status(job, _NO_SHOW_STATUSES, "customer_not_call")
      if job.customer_not_call:
        return job
      expected = job.version
      job.customer_not_call = True
      job = await self._save(job, expected)
      logger.info("Customer no-show recorded job_id=%s translator_id=%s", job_id, job.translator_id)
      return job

  async def record_contact_email(self, job_id: str, email: str, actor: Actor) -> Job:
    """Store the contact email of an immediate booking and email the customer a confirmation."""
    address = require_email(email)
    async with self._locks.hold(job_id):
      job = await self._load(job_id)
      if not actor.is_privileged and not (actor.role == ActorRole.CUSTOMER and actor.actor_id == job.customer_id):
        raise ForbiddenError("Only the owning customer or an admin can set the contact email.")
      if not job.immediate:
        raise ValidationError(f"Job {job_id} is not an immediate booking.")
      require_status(job, ACTIVE_STATUSES, "record_contact_email")
      expected = job.version
      job.user_email = address
      job = await self._save(job, expected)
      logger.info("Contact email recorded job_id=%s", job_id)

    await self._notify(job, EventKind.CONFIRMATION, include_customer=True)
    return job

  async def reopen(self, job_id: str) -> Job:
    """Return a cancelled or completed job to created with a freshly computed candidate set."""
    async with self._locks.hold(job_id):
      job = await self._load(job_id)
      validate_transition(job, JobStatus.CREATED)
      expected = job.version
      job.status = JobStatus.CREATED
      job.translator_id = None
      job.offered_at = None
      job.offer_dispatched_at = None
      job.accepted_at = None
      job.started_at = None
      job.ended_at = None
      job.cancelled_at = None
      job.cancelled_by = None
      job.customer_not_call = False
      job.session_time = None
      # Declines and exclusions survive, so the new set skips those translators.
      job.candidate_ids = await self._matcher.find_candidates(job)
      job = await self._save(job, expected)
      logger.info("Job reopened job_id=%s candidates=%d", job_id, len(job.candidate_ids))

    # The move to offered is left to assign().
    await self._notify(job, EventKind.REOPENED, include_customer=True)
    return job

  async def update_details(self, job_id: str, update: JobUpdate, actor: Actor) -> Job:
    """Edit a job that nobody has accepted yet; match changes trigger a fresh offer."""
    async with self._locks.hold(job_id):
      job = await self._load(job_id)
      if not actor.is_privileged and not (actor.role == ActorRole.CUSTOMER and actor.actor_id == job.customer_id):
        raise ForbiddenError("Only the owning customer or an admin can edit this job.")
      require_status(job, _EDITABLE_STATUSES, "update")

      from_language = update.from_language or job.from_language
      to_language = update.to_language or job.to_language
      if from_language == to_language:
        raise ValidationError("from_language and to_language must differ.")

      expected = job.version
      job.from_language = from_language
      job.to_language = to_language
      if update.due_at is not None:
        job.due_at = update.due_at
      if update.duration_minutes is not None:
        job.duration_minutes = update.duration_minutes
      if update.instructions is not None:
        job.instructions = update.instructions
      if update.town is not None:
        job.town = update.town
      job = await self._save(job, expected)
      logger.info("Job details updated job_id=%s rematch=%s", job_id, update.changes_matching)

      if update.changes_matching:
        kind = EventKind.REOFFER if job.status == JobStatus.OFFERED else EventKind.OFFER
        return await self._offer(job, kind)
      return job

  async def _accept(self, job_id: str, translator_id: str, *, check_candidates: bool) -> Job:
    async with self._locks.hold(job_id):
      job = await self._load(job_id)
      if job.status in ASSIGNED_STATUSES:
        raise ConflictError(job_id, "job has already been accepted")
      validate_transition(job, JobStatus.ACCEPTED)
      if job.offer_dispatched_at is None:
        raise ConflictError(job_id, "offer is still being dispatched")
      if check_candidates and translator_id not in job.candidate_ids:
        raise ConflictError(job_id, f"translator {translator_id} is not a candidate for the current offer")

      others = tuple(candidate for candidate in job.candidate_ids if candidate != translator_id)
      expected = job.version
      job.status = JobStatus.ACCEPTED
      job.translator_id = translator_id
      job.accepted_at = self._clock()
      job = await self._save(job, expected)
      logger.info("Job accepted job_id=%s translator_id=%s round=%d", job_id, translator_id, job.offer_round)

    # Other candidates learn the offer is gone; the customer gets a confirmation.
    await self._notify(job, EventKind.ACCEPTED, translator_ids=others, include_customer=True)
    return job

  async def _offer(self, job: Job, kind: EventKind) -> Job:
    """Compute candidates, move to offered and dispatch. Caller holds the job lock."""
    validate_transition(job, JobStatus.OFFERED)
    candidates = await self._matcher.find_candidates(job)

    expected = job.version
    job.status = JobStatus.OFFERED
    job.candidate_ids = candidates
    job.offer_round += 1
    job.offered_at = self._clock()
    job.offer_dispatched_at = None
    job = await self._save(job, expected)
    logger.info("Job offered job_id=%s round=%d candidates=%d kind=%s", job.job_id, job.offer_round, len(candidates), kind.value)

    if candidates:
      await self._notify(job, kind, translator_ids=candidates)
    else:
      logger.warning("No eligible translators for job_id=%s pair=%s>%s", job.job_id, job.from_language, job.to_language)

    expected = job.version
    job.offer_dispatched_at = self._clock()
    return await self._save(job, expected)

  async def _notify(self, job: Job, kind: EventKind, *, translator_ids: Iterable[str] = (), include_customer: bool = False) -> None:
    # Delivery is best-effort; a failed fan-out never undoes the transition.
    try:
      await self._dispatcher.notify(job, kind, translator_ids=translator_ids, include_customer=include_customer)
    except Exception as exc:  # noqa: BLE001
      logger.error("Notification fan-out failed event=%s job_id=%s error=%s", kind.value, job.job_id, exc, exc_info=True)

  async def _require_translator(self, translator_id: str) -> None:
    if not translator_id:
      raise ValidationError("translator_id is required.")
    translator = await bounded(self._translators.get_translator(translator_id), timeout_seconds=self._store_timeout_seconds, operation="translator lookup")
    if translator is None:
      raise NotFoundError("translator", translator_id)

  async def _load(self, job_id: str) -> Job:
    job = await bounded(self._job_store.get(job_id), timeout_seconds=self._store_timeout_seconds, operation="job lookup")
    if job is None:
      raise NotFoundError("job", job_id)
    return job

  async def _save(self, job: Job, expected_version: int) -> Job:
    check_assignment(job)
    job.updated_at = self._clock()
    return await bounded(self._job_store.save(job, expected_version=expected_version), timeout_seconds=self._store_timeout_seconds, operation="job save")
