import logging

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_actor, get_services, require_admin
from app.api.models import AcceptJobRequest, ContactEmailRequest, CreateJobRequest, DispatchReportResponse, DistanceFeedRequest, FeedResponse, JobResponse, UpdateJobRequest
from app.bookings.errors import ForbiddenError, ValidationError
from app.bookings.factory import BookingServices
from app.bookings.models import Actor, ActorRole, Job, JobQuery, JobStatus

router = APIRouter()
logger = logging.getLogger("app.api.routes.bookings")


def _require_participant(job: Job, actor: Actor) -> None:
  """Allow admins, the owning customer and the assigned translator."""
  if actor.is_privileged:
    return
  if actor.role == ActorRole.CUSTOMER and actor.actor_id == job.customer_id:
    return
  if actor.role == ActorRole.TRANSLATOR and actor.actor_id == job.translator_id:
    return
  raise ForbiddenError(f"Actor {actor.actor_id} is not a participant of job {job.job_id}.")


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(  # noqa: B008
  request: CreateJobRequest,
  actor: Actor = Depends(get_current_actor),  # noqa: B008
  services: BookingServices = Depends(get_services),  # noqa: B008
) -> JobResponse:
  """Create a booking and offer it to matching translators."""
  if actor.role == ActorRole.CUSTOMER:
    customer_id = actor.actor_id
  elif actor.is_privileged:
    if not request.customer_id:
      raise ValidationError("customer_id is required when an admin creates a job.")
    customer_id = request.customer_id
  else:
    raise ForbiddenError("Translators cannot create jobs.")
  job = await services.engine.create(customer_id, request.to_spec())
  return JobResponse.from_job(job)


@router.get("", response_model=list[JobResponse])
async def list_jobs(  # noqa: B008
  status: list[JobStatus] | None = Query(default=None),  # noqa: B008
  customer_id: str | None = None,
  translator_id: str | None = None,
  limit: int = 100,
  offset: int = 0,
  actor: Actor = Depends(require_admin),  # noqa: B008
  services: BookingServices = Depends(get_services),  # noqa: B008
) -> list[JobResponse]:
  """List jobs across all customers."""
  query = JobQuery(statuses=frozenset(status) if status else None, customer_id=customer_id, translator_id=translator_id, limit=limit, offset=offset)
  jobs = await services.queries.list_jobs(actor, query)
  return [JobResponse.from_job(job) for job in jobs]


@router.get("/mine", response_model=list[JobResponse])
async def users_jobs(actor: Actor = Depends(get_current_actor), services: BookingServices = Depends(get_services)) -> list[JobResponse]:  # noqa: B008
  """Active jobs for the acting user."""
  return [JobResponse.from_job(job) for job in await services.queries.users_jobs(actor)]


@router.get("/history", response_model=list[JobResponse])
async def users_jobs_history(  # noqa: B008
  user_id: str | None = None,
  role: ActorRole | None = None,
  limit: int = 15,
  offset: int = 0,
  actor: Actor = Depends(get_current_actor),  # noqa: B008
  services: BookingServices = Depends(get_services),  # noqa: B008
) -> list[JobResponse]:
  """Completed and cancelled jobs; admins may look up any user."""
  if actor.is_privileged:
    if not user_id or role is None:
      raise ValidationError("user_id and role are required for admin history lookups.")
    target_id, target_role = user_id, role
  else:
    if user_id and user_id != actor.actor_id:
      raise ForbiddenError("Users can only read their own history.")
    target_id, target_role = actor.actor_id, actor.role
  jobs = await services.queries.users_jobs_history(target_id, target_role, limit=limit, offset=offset)
  return [JobResponse.from_job(job) for job in jobs]


@router.get("/potential", response_model=list[JobResponse])
async def potential_jobs(  # noqa: B008
  translator_id: str | None = None,
  actor: Actor = Depends(get_current_actor),  # noqa: B008
  services: BookingServices = Depends(get_services),  # noqa: B008
) -> list[JobResponse]:
  """Offered jobs a translator can still accept."""
  if actor.role == ActorRole.TRANSLATOR:
    target = actor.actor_id
  elif actor.is_privileged and translator_id:
    target = translator_id
  else:
    raise ForbiddenError("Potential jobs are listed for translators.")
  return [JobResponse.from_job(job) for job in await services.matcher.find_potential_jobs(target)]


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, actor: Actor = Depends(get_current_actor), services: BookingServices = Depends(get_services)) -> JobResponse:  # noqa: B008
  """Fetch one job."""
  job = await services.queries.get_job(job_id)
  # Candidates may read an offer they were sent.
  if not (actor.role == ActorRole.TRANSLATOR and actor.actor_id in job.candidate_ids):
    _require_participant(job, actor)
  return JobResponse.from_job(job)


@router.patch("/{job_id}", response_model=JobResponse)
async def update_job(  # noqa: B008
  job_id: str,
  request: UpdateJobRequest,
  actor: Actor = Depends(get_current_actor),  # noqa: B008
  services: BookingServices = Depends(get_services),  # noqa: B008
) -> JobResponse:
  """Edit an unaccepted job."""
  return JobResponse.from_job(await services.engine.update_details(job_id, request.to_update(), actor))


@router.post("/{job_id}/assign", response_model=JobResponse, dependencies=[Depends(require_admin)])
async def assign_job(job_id: str, services: BookingServices = Depends(get_services)) -> JobResponse:  # noqa: B008
  """Offer the job, or re-offer it once the offer window has passed."""
  return JobResponse.from_job(await services.engine.assign(job_id))


@router.post("/{job_id}/accept", response_model=JobResponse)
async def accept_job(  # noqa: B008
  job_id: str,
  request: AcceptJobRequest | None = None,
  actor: Actor = Depends(get_current_actor),  # noqa: B008
  services: BookingServices = Depends(get_services),  # noqa: B008
) -> JobResponse:
  """Accept an offered job."""
  translator_id = request.translator_id if request else None
  return JobResponse.from_job(await services.engine.accept_by_id(job_id, actor, translator_id))


@router.post("/{job_id}/decline", response_model=JobResponse)
async def decline_job(job_id: str, actor: Actor = Depends(get_current_actor), services: BookingServices = Depends(get_services)) -> JobResponse:  # noqa: B008
  """Decline an offer."""
  if actor.role != ActorRole.TRANSLATOR:
    raise ForbiddenError("Only translators can decline offers.")
  return JobResponse.from_job(await services.engine.decline(job_id, actor.actor_id))


@router.post("/{job_id}/start", response_model=JobResponse)
async def start_job(job_id: str, actor: Actor = Depends(get_current_actor), services: BookingServices = Depends(get_services)) -> JobResponse:  # noqa: B008
  """Mark the job as in progress."""
  return JobResponse.from_job(await services.engine.start(job_id, actor))


@router.post("/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(job_id: str, actor: Actor = Depends(get_current_actor), services: BookingServices = Depends(get_services)) -> JobResponse:  # noqa: B008
  """Cancel the job."""
  return JobResponse.from_job(await services.engine.cancel(job_id, actor))


@router.post("/{job_id}/end", response_model=JobResponse)
async def end_job(job_id: str, actor: Actor = Depends(get_current_actor), services: BookingServices = Depends(get_services)) -> JobResponse:  # noqa: B008
  """Complete the job."""
  _require_participant(await services.queries.get_job(job_id), actor)
  return JobResponse.from_job(await services.engine.end(job_id))


@router.post("/{job_id}/customer-not-call", response_model=JobResponse)
async def customer_not_call(job_id: str, actor: Actor = Depends(get_current_actor), services: BookingServices = Depends(get_services)) -> JobResponse:  # noqa: B008
  """Record that the customer did not show up."""
  job = await services.queries.get_job(job_id)
  if actor.role == ActorRole.CUSTOMER:
    raise ForbiddenError("Customers cannot report their own no-show.")
  _require_participant(job, actor)
  return JobResponse.from_job(await services.engine.customer_not_call(job_id))


@router.post("/{job_id}/email", response_model=JobResponse)
async def record_contact_email(  # noqa: B008
  job_id: str,
  request: ContactEmailRequest,
  actor: Actor = Depends(get_current_actor),  # noqa: B008
  services: BookingServices = Depends(get_services),  # noqa: B008
) -> JobResponse:
  """Store the contact email of an immediate booking and send the confirmation."""
  return JobResponse.from_job(await services.engine.record_contact_email(job_id, request.user_email, actor))


@router.post("/{job_id}/reopen", response_model=JobResponse, dependencies=[Depends(require_admin)])
async def reopen_job(job_id: str, services: BookingServices = Depends(get_services)) -> JobResponse:  # noqa: B008
  """Reopen a cancelled or completed job; assign offers it again."""
  return JobResponse.from_job(await services.engine.reopen(job_id))


@router.post("/{job_id}/distance", response_model=FeedResponse, dependencies=[Depends(require_admin)])
async def distance_feed(job_id: str, request: DistanceFeedRequest, services: BookingServices = Depends(get_services)) -> FeedResponse:  # noqa: B008
  """Record distance/time metrics and admin annotations."""
  return FeedResponse.from_result(await services.reconciler.apply_feed(request.to_feed(job_id)))


@router.post("/{job_id}/notifications/push", response_model=DispatchReportResponse, dependencies=[Depends(require_admin)])
async def resend_push(job_id: str, services: BookingServices = Depends(get_services)) -> DispatchReportResponse:  # noqa: B008
  """Re-send the push notification to the job's current recipients."""
  return DispatchReportResponse.from_report(await services.dispatcher.resend_push(job_id))


@router.post("/{job_id}/notifications/sms", response_model=DispatchReportResponse, dependencies=[Depends(require_admin)])
async def resend_sms(job_id: str, services: BookingServices = Depends(get_services)) -> DispatchReportResponse:  # noqa: B008
  """Re-send the SMS to the job's current recipients."""
  return DispatchReportResponse.from_report(await services.dispatcher.resend_sms(job_id))
