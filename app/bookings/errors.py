"""
Booking error types.

All errors inherit from BookingError so callers can catch the whole family.
The HTTP boundary maps each subclass to one status code; nothing in the core
knows about HTTP.
"""

from __future__ import annotations


class BookingError(Exception):
  """Base exception for all booking failures."""


class ValidationError(BookingError):
  """Raised for malformed or missing input. Never retried."""


class ForbiddenError(BookingError):
  """Raised when the acting user's role may not perform an operation."""


class NotFoundError(BookingError):
  """Raised when a job, translator or customer cannot be found."""

  def __init__(self, entity_type: str, entity_id: str) -> None:
    self.entity_type = entity_type
    self.entity_id = entity_id
    super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")


class ConflictError(BookingError):
  """Raised when an at-most-one transition was lost to another writer."""

  def __init__(self, job_id: str, reason: str) -> None:
    self.job_id = job_id
    self.reason = reason
    super().__init__(f"Conflict on job {job_id}: {reason}")


class InvalidStateError(BookingError):
  """Raised when a transition is not legal from the job's current status."""

  def __init__(self, job_id: str, current_state: str, requested_state: str) -> None:
    self.job_id = job_id
    self.current_state = current_state
    self.requested_state = requested_state
    super().__init__(f"Invalid job state transition for {job_id}: {current_state} -> {requested_state}")


class TransientError(BookingError):
  """Raised for storage, lock or transport timeouts. Safe to retry with backoff."""
