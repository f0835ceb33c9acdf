from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from app.bookings.commands import AdminFields, DistanceFeed, JobSpec, JobUpdate
from app.bookings.models import FeedResult, Job
from app.notifications.contracts import DispatchReport

_TRUE_STRINGS = {"true", "yes", "1", "on"}
_FALSE_STRINGS = {"false", "no", "0", "off"}


def _coerce_flag(value: Any) -> bool | None:
  """Map the 'true'/'yes' style flags sent by the admin panel to booleans."""
  if value is None or isinstance(value, bool):
    return value
  if isinstance(value, str):
    normalized = value.strip().lower()
    if normalized == "":
      return None
    if normalized in _TRUE_STRINGS:
      return True
    if normalized in _FALSE_STRINGS:
      return False
  raise ValueError("must be a boolean or one of 'true', 'false', 'yes', 'no'")


class CreateJobRequest(BaseModel):
  """Booking request posted by a customer (or by an admin on their behalf)."""

  from_language: StrictStr = Field(min_length=1, max_length=64)
  to_language: StrictStr = Field(min_length=1, max_length=64)
  due_at: datetime
  duration_minutes: int
  on_site: bool = False
  town: StrictStr | None = Field(default=None, max_length=128)
  immediate: bool = False
  required_gender: Literal["male", "female"] | None = None
  certified_only: bool = False
  instructions: StrictStr | None = Field(default=None, max_length=2000)
  user_email: StrictStr | None = Field(default=None, max_length=254, description="Contact email for the booking confirmation.")
  customer_id: StrictStr | None = Field(default=None, description="Required when an admin books for a customer.")
  model_config = ConfigDict(extra="forbid")

  def to_spec(self) -> JobSpec:
    return JobSpec(
      from_language=self.from_language,
      to_language=self.to_language,
      due_at=self.due_at,
      duration_minutes=self.duration_minutes,
      on_site=self.on_site,
      town=self.town,
      immediate=self.immediate,
      required_gender=self.required_gender,
      certified_only=self.certified_only,
      instructions=self.instructions,
      user_email=self.user_email,
    )


class UpdateJobRequest(BaseModel):
  """Partial edit of a job nobody has accepted yet."""

  from_language: StrictStr | None = Field(default=None, min_length=1, max_length=64)
  to_language: StrictStr | None = Field(default=None, min_length=1, max_length=64)
  due_at: datetime | None = None
  duration_minutes: int | None = None
  town: StrictStr | None = Field(default=None, max_length=128)
  instructions: StrictStr | None = Field(default=None, max_length=2000)
  model_config = ConfigDict(extra="forbid")

  def to_update(self) -> JobUpdate:
    return JobUpdate(**self.model_dump())


class AcceptJobRequest(BaseModel):
  """Accept payload; admins name the translator, translators may omit it."""

  translator_id: StrictStr | None = None
  model_config = ConfigDict(extra="forbid")


class ContactEmailRequest(BaseModel):
  """Contact email for an immediate booking."""

  user_email: StrictStr = Field(min_length=3, max_length=254)
  model_config = ConfigDict(extra="forbid")


class DistanceFeedRequest(BaseModel):
  """Distance/time metrics and admin annotations for a finished job."""

  distance: StrictStr | None = None
  time: StrictStr | None = None
  admincomment: StrictStr | None = Field(default=None, max_length=2000)
  session_time: StrictStr | None = None
  flagged: bool | None = None
  manually_handled: bool | None = None
  by_admin: bool | None = None
  model_config = ConfigDict(extra="forbid")

  @field_validator("flagged", "manually_handled", "by_admin", mode="before")
  @classmethod
  def parse_flag(cls, value: Any) -> bool | None:
    return _coerce_flag(value)

  def to_feed(self, job_id: str) -> DistanceFeed:
    admin = AdminFields(admin_comment=self.admincomment, session_time=self.session_time, flagged=self.flagged, manually_handled=self.manually_handled, by_admin=self.by_admin)
    return DistanceFeed(job_id=job_id, distance=self.distance, time=self.time, admin=admin)


class JobResponse(BaseModel):
  """Client view of a booking job."""

  job_id: str
  customer_id: str
  status: str
  from_language: str
  to_language: str
  due_at: datetime
  duration_minutes: int
  on_site: bool
  town: str | None
  immediate: bool
  required_gender: str | None
  certified_only: bool
  instructions: str | None
  user_email: str | None
  translator_id: str | None
  candidate_ids: list[str]
  offer_round: int
  offered_at: datetime | None
  accepted_at: datetime | None
  started_at: datetime | None
  ended_at: datetime | None
  cancelled_at: datetime | None
  cancelled_by: str | None
  customer_not_call: bool
  admin_comments: str
  flagged: bool
  manually_handled: bool
  by_admin: bool
  session_time: str | None
  version: int
  created_at: datetime
  updated_at: datetime

  @classmethod
  def from_job(cls, job: Job) -> JobResponse:
    return cls(
      job_id=job.job_id,
      customer_id=job.customer_id,
      status=job.status.value,
      from_language=job.from_language,
      to_language=job.to_language,
      due_at=job.due_at,
      duration_minutes=job.duration_minutes,
      on_site=job.on_site,
      town=job.town,
      immediate=job.immediate,
      required_gender=job.required_gender,
      certified_only=job.certified_only,
      instructions=job.instructions,
      user_email=job.user_email,
      translator_id=job.translator_id,
      candidate_ids=list(job.candidate_ids),
      offer_round=job.offer_round,
      offered_at=job.offered_at,
      accepted_at=job.accepted_at,
      started_at=job.started_at,
      ended_at=job.ended_at,
      cancelled_at=job.cancelled_at,
      cancelled_by=job.cancelled_by.value if job.cancelled_by else None,
      customer_not_call=job.customer_not_call,
      admin_comments=job.admin_comments,
      flagged=job.flagged,
      manually_handled=job.manually_handled,
      by_admin=job.by_admin,
      session_time=job.session_time,
      version=job.version,
      created_at=job.created_at,
      updated_at=job.updated_at,
    )


class FeedPartResponse(BaseModel):
  status: str
  error: str | None = None


class FeedResponse(BaseModel):
  """Outcome of a distance feed, one entry per write."""

  job_id: str
  distance: FeedPartResponse
  admin: FeedPartResponse

  @classmethod
  def from_result(cls, result: FeedResult) -> FeedResponse:
    return cls(
      job_id=result.job_id,
      distance=FeedPartResponse(status=result.distance.status, error=result.distance.error),
      admin=FeedPartResponse(status=result.admin.status, error=result.admin.error),
    )


class DeliveryResponse(BaseModel):
  status: str
  provider_message_id: str | None = None
  error: str | None = None
  transient: bool = False


class DispatchReportResponse(BaseModel):
  """Per-recipient, per-channel delivery outcomes."""

  job_id: str
  event: str
  results: dict[str, dict[str, DeliveryResponse]]

  @classmethod
  def from_report(cls, report: DispatchReport) -> DispatchReportResponse:
    results = {
      user_id: {channel.value: DeliveryResponse(status=result.status, provider_message_id=result.provider_message_id, error=result.error, transient=result.transient) for channel, result in channels.items()}
      for user_id, channels in report.results.items()
    }
    return cls(job_id=report.job_id, event=report.kind.value, results=results)
