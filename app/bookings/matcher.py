"""Translator matching for job offers."""

from __future__ import annotations

import logging

from app.bookings.errors import NotFoundError
from app.bookings.models import Job, JobQuery, JobStatus, Translator
from app.storage.job_store import JobStore, TranslatorDirectory
from app.utils.timeouts import bounded

logger = logging.getLogger(__name__)

_POTENTIAL_JOBS_LIMIT = 500


def _normalize_town(town: str | None) -> str:
  return (town or "").strip().casefold()


def is_eligible(translator: Translator, job: Job) -> bool:
  """Decide whether a translator may receive an offer for a job.

  Pure function of the two snapshots so repeated calls always agree.
  """
  if not translator.available:
    return False
  if translator.translator_id in job.declined_ids or translator.translator_id in job.excluded_ids:
    return False
  if job.customer_id in translator.blocked_customer_ids:
    return False

  languages = {language.lower() for language in translator.languages}
  if job.from_language not in languages or job.to_language not in languages:
    return False

  # Phone jobs are location independent; on-site jobs need a town match.
  if job.on_site and _normalize_town(job.town) not in {_normalize_town(town) for town in translator.towns}:
    return False

  if job.required_gender is not None and (translator.gender or "").lower() != job.required_gender:
    return False

  if job.certified_only and not translator.certified:
    return False

  return True


class TranslatorMatcher:
  """Computes candidate sets for offers and the inverse potential-jobs view."""

  def __init__(self, *, directory: TranslatorDirectory, job_store: JobStore, store_timeout_seconds: float) -> None:
    self._directory = directory
    self._job_store = job_store
    self._store_timeout_seconds = store_timeout_seconds

  async def find_candidates(self, job: Job) -> tuple[str, ...]:
    """Return eligible translator ids for a job, sorted by id."""
    pool = await bounded(self._directory.list_translators(), timeout_seconds=self._store_timeout_seconds, operation="translator pool lookup")
    candidates = tuple(sorted(translator.translator_id for translator in pool if is_eligible(translator, job)))
    logger.debug("Matched job_id=%s pool_size=%d candidates=%d", job.job_id, len(pool), len(candidates))
    return candidates

  async def find_potential_jobs(self, translator_id: str) -> list[Job]:
    """Return offered jobs this translator can still answer, soonest first."""
    translator = await bounded(self._directory.get_translator(translator_id), timeout_seconds=self._store_timeout_seconds, operation="translator lookup")
    if translator is None:
      raise NotFoundError("translator", translator_id)

    query = JobQuery(statuses=frozenset({JobStatus.OFFERED}), candidate_id=translator_id, limit=_POTENTIAL_JOBS_LIMIT)
    jobs = await bounded(self._job_store.query(query), timeout_seconds=self._store_timeout_seconds, operation="potential jobs query")
    # Re-check eligibility; availability may have changed since the offer.
    return [job for job in jobs if is_eligible(translator, job)]
