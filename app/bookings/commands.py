"""Validated command values handed to the booking core.

Each command validates itself on construction so the engine never sees a
half-formed request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.bookings.errors import ValidationError

_MAX_DURATION_MINUTES = 24 * 60
_GENDERS = {"male", "female"}


def _require_text(value: str | None, field_name: str) -> str:
  if value is None or not str(value).strip():
    raise ValidationError(f"{field_name} is required.")
  return str(value).strip()


def _optional_text(value: str | None) -> str | None:
  if value is None:
    return None
  stripped = str(value).strip()
  return stripped or None


def require_email(value: str | None, field_name: str = "user_email") -> str:
  """Trim and lower-case an email address; reject anything without a local part and a dotted domain."""
  address = _require_text(value, field_name).lower()
  local, _, domain = address.partition("@")
  if not local or "." not in domain or domain.startswith(".") or domain.endswith(".") or " " in address or "@" in domain:
    raise ValidationError(f"{field_name} must be a valid email address.")
  return address


def _check_duration(value: int) -> None:
  if value <= 0 or value > _MAX_DURATION_MINUTES:
    raise ValidationError(f"duration_minutes must be between 1 and {_MAX_DURATION_MINUTES}.")


def _check_due(value: datetime) -> None:
  if value.tzinfo is None:
    raise ValidationError("due_at must be timezone-aware.")


@dataclass(frozen=True)
class JobSpec:
  """Everything needed to create a booking."""

  from_language: str
  to_language: str
  due_at: datetime
  duration_minutes: int
  on_site: bool = False
  town: str | None = None
  immediate: bool = False
  required_gender: str | None = None
  certified_only: bool = False
  instructions: str | None = None
  user_email: str | None = None

  def __post_init__(self) -> None:
    from_language = _require_text(self.from_language, "from_language").lower()
    to_language = _require_text(self.to_language, "to_language").lower()
    if from_language == to_language:
      raise ValidationError("from_language and to_language must differ.")
    if self.due_at is None:
      raise ValidationError("due_at is required.")
    _check_due(self.due_at)
    if self.duration_minutes is None:
      raise ValidationError("duration_minutes is required.")
    _check_duration(self.duration_minutes)
    town = _optional_text(self.town)
    # On-site jobs are matched by town, so one must be given.
    if self.on_site and town is None:
      raise ValidationError("town is required for on-site jobs.")
    gender = _optional_text(self.required_gender)
    if gender is not None:
      gender = gender.lower()
      if gender not in _GENDERS:
        raise ValidationError(f"required_gender must be one of {sorted(_GENDERS)}.")

    object.__setattr__(self, "from_language", from_language)
    object.__setattr__(self, "to_language", to_language)
    object.__setattr__(self, "town", town)
    object.__setattr__(self, "required_gender", gender)
    object.__setattr__(self, "instructions", _optional_text(self.instructions))
    user_email = _optional_text(self.user_email)
    object.__setattr__(self, "user_email", require_email(user_email) if user_email is not None else None)


@dataclass(frozen=True)
class JobUpdate:
  """Partial change to a booking that has not been accepted yet. None means unchanged."""

  due_at: datetime | None = None
  duration_minutes: int | None = None
  instructions: str | None = None
  from_language: str | None = None
  to_language: str | None = None
  town: str | None = None

  def __post_init__(self) -> None:
    if self.due_at is not None:
      _check_due(self.due_at)
    if self.duration_minutes is not None:
      _check_duration(self.duration_minutes)
    for name in ("from_language", "to_language"):
      value = getattr(self, name)
      if value is not None:
        object.__setattr__(self, name, _require_text(value, name).lower())
    if self.town is not None:
      object.__setattr__(self, "town", _require_text(self.town, "town"))
    if all(getattr(self, name) is None for name in ("due_at", "duration_minutes", "instructions", "from_language", "to_language", "town")):
      raise ValidationError("At least one field must be changed.")

  @property
  def changes_matching(self) -> bool:
    return self.from_language is not None or self.to_language is not None or self.town is not None


@dataclass(frozen=True)
class AdminFields:
  """Admin annotations carried by a distance feed. None means not supplied."""

  admin_comment: str | None = None
  session_time: str | None = None
  flagged: bool | None = None
  manually_handled: bool | None = None
  by_admin: bool | None = None

  def __post_init__(self) -> None:
    object.__setattr__(self, "admin_comment", _optional_text(self.admin_comment))
    object.__setattr__(self, "session_time", _optional_text(self.session_time))

  @property
  def is_empty(self) -> bool:
    return self.admin_comment is None and self.session_time is None and self.flagged is None and self.manually_handled is None and self.by_admin is None

  @property
  def effective_flagged(self) -> bool:
    # A flag without a justifying comment is dropped.
    return bool(self.flagged) and self.admin_comment is not None


@dataclass(frozen=True)
class DistanceFeed:
  """Post-hoc distance/time metrics and admin corrections for one job."""

  job_id: str
  distance: str | None = None
  time: str | None = None
  admin: AdminFields = AdminFields()

  def __post_init__(self) -> None:
    object.__setattr__(self, "job_id", _require_text(self.job_id, "job_id"))
    object.__setattr__(self, "distance", _optional_text(self.distance))
    object.__setattr__(self, "time", _optional_text(self.time))

  @property
  def has_metrics(self) -> bool:
    return self.distance is not None or self.time is not None
