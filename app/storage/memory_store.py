"""In-process stores used for local development and tests."""

from __future__ import annotations

import asyncio
import copy
import json
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from app.bookings.errors import ConflictError, NotFoundError, ValidationError
from app.bookings.models import Customer, Distance, Job, JobQuery, Translator
from app.storage.job_store import CustomerDirectory, DistanceStore, JobStore, TranslatorDirectory


def matches_query(job: Job, query: JobQuery) -> bool:
  """Apply a JobQuery filter to one job."""
  if query.statuses is not None and job.status not in query.statuses:
    return False
  if query.customer_id is not None and job.customer_id != query.customer_id:
    return False
  if query.translator_id is not None and job.translator_id != query.translator_id:
    return False
  if query.candidate_id is not None and query.candidate_id not in job.candidate_ids:
    return False
  return True


class InMemoryJobStore(JobStore):
  """Dict-backed job store with the same version check as the Postgres store."""

  def __init__(self) -> None:
    self._jobs: dict[str, Job] = {}
    self._lock = asyncio.Lock()

  async def create(self, job: Job) -> Job:
    async with self._lock:
      if job.job_id in self._jobs:
        raise ValidationError(f"Job already exists: {job.job_id}")
      stored = copy.deepcopy(job)
      stored.version = 1
      self._jobs[job.job_id] = stored
      return copy.deepcopy(stored)

  async def get(self, job_id: str) -> Job | None:
    async with self._lock:
      stored = self._jobs.get(job_id)
      return copy.deepcopy(stored) if stored is not None else None

  async def save(self, job: Job, *, expected_version: int) -> Job:
    async with self._lock:
      current = self._jobs.get(job.job_id)
      if current is None:
        raise NotFoundError("job", job.job_id)
      if current.version != expected_version:
        raise ConflictError(job.job_id, f"stale version {expected_version}, stored version is {current.version}")
      stored = copy.deepcopy(job)
      stored.version = expected_version + 1
      stored.updated_at = job.updated_at or datetime.now(UTC)
      self._jobs[job.job_id] = stored
      return copy.deepcopy(stored)

  async def query(self, query: JobQuery) -> list[Job]:
    async with self._lock:
      selected = [job for job in self._jobs.values() if matches_query(job, query)]
    if query.newest_first:
      selected.sort(key=lambda job: (job.created_at, job.job_id), reverse=True)
    else:
      selected.sort(key=lambda job: (job.due_at, job.job_id))
    return [copy.deepcopy(job) for job in selected[query.offset : query.offset + query.limit]]


class InMemoryDistanceStore(DistanceStore):
  """Dict-backed distance store."""

  def __init__(self) -> None:
    self._rows: dict[str, Distance] = {}

  async def get(self, job_id: str) -> Distance | None:
    row = self._rows.get(job_id)
    return copy.copy(row) if row is not None else None

  async def save(self, distance: Distance) -> Distance:
    self._rows[distance.job_id] = copy.copy(distance)
    return copy.copy(distance)


class InMemoryDirectory(TranslatorDirectory, CustomerDirectory):
  """Static translator and customer directory."""

  def __init__(self, *, translators: Iterable[Translator] = (), customers: Iterable[Customer] = ()) -> None:
    self._translators = {translator.translator_id: translator for translator in translators}
    self._customers = {customer.customer_id: customer for customer in customers}

  def add_translator(self, translator: Translator) -> None:
    self._translators[translator.translator_id] = translator

  def add_customer(self, customer: Customer) -> None:
    self._customers[customer.customer_id] = customer

  async def get_translator(self, translator_id: str) -> Translator | None:
    return self._translators.get(translator_id)

  async def list_translators(self) -> list[Translator]:
    return sorted(self._translators.values(), key=lambda translator: translator.translator_id)

  async def get_customer(self, customer_id: str) -> Customer | None:
    return self._customers.get(customer_id)


def _translator_from_seed(entry: dict[str, Any]) -> Translator:
  return Translator(
    translator_id=str(entry["translator_id"]),
    name=str(entry.get("name") or entry["translator_id"]),
    languages=frozenset(str(language).lower() for language in entry.get("languages", ())),
    available=bool(entry.get("available", True)),
    towns=frozenset(entry.get("towns", ())),
    gender=entry.get("gender"),
    certified=bool(entry.get("certified", False)),
    blocked_customer_ids=frozenset(entry.get("blocked_customer_ids", ())),
    push_token=entry.get("push_token"),
    phone_number=entry.get("phone_number"),
  )


def _customer_from_seed(entry: dict[str, Any]) -> Customer:
  return Customer(
    customer_id=str(entry["customer_id"]),
    name=str(entry.get("name") or entry["customer_id"]),
    push_token=entry.get("push_token"),
    phone_number=entry.get("phone_number"),
    email=entry.get("email"),
  )


def load_directory_seed(path: Path) -> InMemoryDirectory:
  """Build a directory from a JSON file with "translators" and "customers" lists."""
  try:
    raw = json.loads(path.read_text(encoding="utf-8"))
  except (OSError, json.JSONDecodeError) as exc:
    raise ValueError(f"Directory seed {path} could not be read: {exc}") from exc

  if not isinstance(raw, dict):
    raise ValueError(f"Directory seed {path} must be a JSON object.")

  try:
    translators = [_translator_from_seed(entry) for entry in raw.get("translators", [])]
    customers = [_customer_from_seed(entry) for entry in raw.get("customers", [])]
  except (KeyError, TypeError) as exc:
    raise ValueError(f"Directory seed {path} has a malformed entry: {exc}") from exc

  return InMemoryDirectory(translators=translators, customers=customers)
