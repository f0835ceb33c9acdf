"""
State transition validation for bookings.

Lifecycle: CREATED -> OFFERED -> ACCEPTED -> IN_PROGRESS -> COMPLETED
Side branches: CANCELLED from OFFERED/ACCEPTED/IN_PROGRESS, and reopen from
CANCELLED/COMPLETED back to CREATED. OFFERED -> OFFERED is a re-offer.

INVARIANT: translator_id is set iff the status is ACCEPTED, IN_PROGRESS or
COMPLETED. Every write goes through validate_transition and check_assignment.
"""

from __future__ import annotations

from app.bookings.errors import InvalidStateError
from app.bookings.models import ASSIGNED_STATUSES, Job, JobStatus

TERMINAL_JOB_STATES: frozenset[JobStatus] = frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED})

_JOB_TRANSITIONS: frozenset[tuple[JobStatus, JobStatus]] = frozenset(
  {
    # Offering and re-offering
    (JobStatus.CREATED, JobStatus.OFFERED),
    (JobStatus.OFFERED, JobStatus.OFFERED),
    # Acceptance and execution
    (JobStatus.OFFERED, JobStatus.ACCEPTED),
    (JobStatus.ACCEPTED, JobStatus.IN_PROGRESS),
    (JobStatus.ACCEPTED, JobStatus.COMPLETED),
    (JobStatus.IN_PROGRESS, JobStatus.COMPLETED),
    # Cancellation
    (JobStatus.OFFERED, JobStatus.CANCELLED),
    (JobStatus.ACCEPTED, JobStatus.CANCELLED),
    (JobStatus.IN_PROGRESS, JobStatus.CANCELLED),
    # Reopen
    (JobStatus.CANCELLED, JobStatus.CREATED),
    (JobStatus.COMPLETED, JobStatus.CREATED),
  }
)


def is_job_terminal(status: JobStatus) -> bool:
  """Return True for statuses that only a reopen can leave."""
  return status in TERMINAL_JOB_STATES


def can_transition_job(from_status: JobStatus, to_status: JobStatus) -> bool:
  """Check if a job status transition is an edge of the lifecycle graph."""
  return (from_status, to_status) in _JOB_TRANSITIONS


def validate_transition(job: Job, to_status: JobStatus) -> None:
  """
  Validate a job status transition, raising if illegal.

  Raises:
    InvalidStateError: naming the current and requested status.
  """
  if not can_transition_job(job.status, to_status):
    raise InvalidStateError(job.job_id, job.status.value, to_status.value)


def require_status(job: Job, allowed: frozenset[JobStatus], operation: str) -> None:
  """Guard a non-transition operation (annotation, decline) on the current status."""
  if job.status not in allowed:
    raise InvalidStateError(job.job_id, job.status.value, operation)


def check_assignment(job: Job) -> None:
  """Enforce that a translator is bound exactly while the job is assigned."""
  assigned = job.status in ASSIGNED_STATUSES
  if assigned != (job.translator_id is not None):
    raise RuntimeError(f"Assignment invariant violated for job {job.job_id}: status={job.status.value} translator_id={job.translator_id}")
