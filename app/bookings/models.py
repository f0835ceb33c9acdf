"""Domain models for translation job bookings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class JobStatus(str, Enum):
  """Lifecycle status of a booking."""

  CREATED = "created"
  OFFERED = "offered"
  ACCEPTED = "accepted"
  IN_PROGRESS = "in_progress"
  COMPLETED = "completed"
  CANCELLED = "cancelled"


class ActorRole(str, Enum):
  """Role of the user performing an operation."""

  CUSTOMER = "customer"
  TRANSLATOR = "translator"
  ADMIN = "admin"
  SUPERADMIN = "superadmin"


PRIVILEGED_ROLES = frozenset({ActorRole.ADMIN, ActorRole.SUPERADMIN})
ACTIVE_STATUSES = frozenset({JobStatus.CREATED, JobStatus.OFFERED, JobStatus.ACCEPTED, JobStatus.IN_PROGRESS})
ASSIGNED_STATUSES = frozenset({JobStatus.ACCEPTED, JobStatus.IN_PROGRESS, JobStatus.COMPLETED})
HISTORY_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.CANCELLED})


@dataclass(frozen=True)
class Actor:
  """The user on whose behalf an operation runs."""

  actor_id: str
  role: ActorRole

  @property
  def is_privileged(self) -> bool:
    return self.role in PRIVILEGED_ROLES


@dataclass
class Job:
  """A bookable translation task and its lifecycle state."""

  job_id: str
  customer_id: str
  status: JobStatus
  from_language: str
  to_language: str
  due_at: datetime
  duration_minutes: int
  created_at: datetime
  updated_at: datetime
  on_site: bool = False
  town: str | None = None
  immediate: bool = False
  required_gender: str | None = None
  certified_only: bool = False
  instructions: str | None = None
  user_email: str | None = None
  translator_id: str | None = None
  candidate_ids: tuple[str, ...] = ()
  declined_ids: tuple[str, ...] = ()
  excluded_ids: tuple[str, ...] = ()
  offer_round: int = 0
  offered_at: datetime | None = None
  offer_dispatched_at: datetime | None = None
  accepted_at: datetime | None = None
  started_at: datetime | None = None
  ended_at: datetime | None = None
  cancelled_at: datetime | None = None
  cancelled_by: ActorRole | None = None
  customer_not_call: bool = False
  admin_comments: str = ""
  flagged: bool = False
  manually_handled: bool = False
  by_admin: bool = False
  session_time: str | None = None
  version: int = 0


@dataclass
class Distance:
  """Travel distance and time recorded for a job."""

  job_id: str
  distance: str | None = None
  time: str | None = None


@dataclass(frozen=True)
class Translator:
  """Translator profile used for matching and contact."""

  translator_id: str
  name: str
  languages: frozenset[str]
  available: bool = True
  towns: frozenset[str] = frozenset()
  gender: str | None = None
  certified: bool = False
  blocked_customer_ids: frozenset[str] = frozenset()
  push_token: str | None = None
  phone_number: str | None = None


@dataclass(frozen=True)
class Customer:
  """Customer profile used for contact."""

  customer_id: str
  name: str
  push_token: str | None = None
  phone_number: str | None = None
  email: str | None = None


@dataclass(frozen=True)
class JobQuery:
  """Filter for JobStore.query."""

  statuses: frozenset[JobStatus] | None = None
  customer_id: str | None = None
  translator_id: str | None = None
  candidate_id: str | None = None
  limit: int = 100
  offset: int = 0
  newest_first: bool = False


@dataclass(frozen=True)
class FeedPartResult:
  """Outcome of one independent write inside a distance feed."""

  status: str
  error: str | None = None


@dataclass(frozen=True)
class FeedResult:
  """Outcome of a distance feed, one entry per failure domain."""

  job_id: str
  distance: FeedPartResult = field(default_factory=lambda: FeedPartResult(status="skipped"))
  admin: FeedPartResult = field(default_factory=lambda: FeedPartResult(status="skipped"))
