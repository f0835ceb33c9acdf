"""Storage interfaces for bookings, distances and the user directories."""

from __future__ import annotations

from typing import Protocol

from app.bookings.models import Customer, Distance, Job, JobQuery, Translator


class JobStore(Protocol):
  """Repository contract for job persistence. No business rules live here."""

  async def create(self, job: Job) -> Job:
    """Persist a new job and return it with version 1."""

  async def get(self, job_id: str) -> Job | None:
    """Fetch a job by identifier."""

  async def save(self, job: Job, *, expected_version: int) -> Job:
    """Write a job if the stored version still equals expected_version.

    Returns the stored job with its version bumped. Raises ConflictError when
    another writer got there first and NotFoundError when the job is gone.
    """

  async def query(self, query: JobQuery) -> list[Job]:
    """Return jobs matching a filter, ordered by due time (or newest first)."""


class DistanceStore(Protocol):
  """Repository contract for per-job distance metrics."""

  async def get(self, job_id: str) -> Distance | None:
    """Fetch the distance record for a job, if one exists."""

  async def save(self, distance: Distance) -> Distance:
    """Insert or replace the distance record for a job."""


class TranslatorDirectory(Protocol):
  """Read-only lookup of translator attributes and contact channels."""

  async def get_translator(self, translator_id: str) -> Translator | None:
    """Fetch one translator."""

  async def list_translators(self) -> list[Translator]:
    """Return the full translator pool snapshot."""


class CustomerDirectory(Protocol):
  """Read-only lookup of customer contact channels."""

  async def get_customer(self, customer_id: str) -> Customer | None:
    """Fetch one customer."""
