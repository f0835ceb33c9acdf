"""Wiring for the booking services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from datetime import timedelta

from app.bookings.engine import JobLifecycleEngine, OfferPolicy
from app.bookings.locks import JobLocks
from app.bookings.matcher import TranslatorMatcher
from app.bookings.queries import JobQueries
from app.bookings.reconciler import DistanceReconciler
from app.config import Settings
from app.core.database import get_session_factory
from app.notifications.contracts import NotificationTransport
from app.notifications.dispatcher import NotificationDispatcher
from app.storage.job_store import CustomerDirectory, DistanceStore, JobStore, TranslatorDirectory
from app.storage.memory_store import InMemoryDirectory, InMemoryDistanceStore, InMemoryJobStore, load_directory_seed
from app.storage.postgres_directory import PostgresDirectory
from app.storage.postgres_job_store import PostgresDistanceStore, PostgresJobStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingServices:
  """Everything the HTTP layer needs, built once per process."""

  engine: JobLifecycleEngine
  reconciler: DistanceReconciler
  dispatcher: NotificationDispatcher
  matcher: TranslatorMatcher
  queries: JobQueries
  job_store: JobStore
  distance_store: DistanceStore
  translators: TranslatorDirectory
  customers: CustomerDirectory


def assemble_services(
  settings: Settings,
  *,
  job_store: JobStore,
  distance_store: DistanceStore,
  translators: TranslatorDirectory,
  customers: CustomerDirectory,
  transport: NotificationTransport,
) -> BookingServices:
  """Wire the services over the given stores and transport."""
  timeout = settings.store_timeout_seconds
  locks = JobLocks(acquire_timeout_seconds=settings.lock_timeout_seconds)
  matcher = TranslatorMatcher(directory=translators, job_store=job_store, store_timeout_seconds=timeout)
  dispatcher = NotificationDispatcher(transport=transport, job_store=job_store, translators=translators, customers=customers, store_timeout_seconds=timeout)
  engine = JobLifecycleEngine(
    job_store=job_store,
    translators=translators,
    customers=customers,
    matcher=matcher,
    dispatcher=dispatcher,
    locks=locks,
    offer_policy=OfferPolicy(window=timedelta(seconds=settings.offer_window_seconds)),
    store_timeout_seconds=timeout,
  )
  reconciler = DistanceReconciler(job_store=job_store, distance_store=distance_store, locks=locks, store_timeout_seconds=timeout)
  queries = JobQueries(job_store=job_store, store_timeout_seconds=timeout)
  return BookingServices(
    engine=engine,
    reconciler=reconciler,
    dispatcher=dispatcher,
    matcher=matcher,
    queries=queries,
    job_store=job_store,
    distance_store=distance_store,
    translators=translators,
    customers=customers,
  )


def build_booking_services(settings: Settings, *, transport: NotificationTransport) -> BookingServices:
  """Use Postgres when a DSN is configured, in-memory stores otherwise."""
  session_factory = get_session_factory() if settings.pg_dsn else None
  if session_factory is not None:
    directory = PostgresDirectory(session_factory)
    return assemble_services(
      settings,
      job_store=PostgresJobStore(session_factory),
      distance_store=PostgresDistanceStore(session_factory),
      translators=directory,
      customers=directory,
      transport=transport,
    )

  if settings.is_production:
    raise RuntimeError("Refusing to run in-memory booking stores in production.")
  if settings.directory_seed_path:
    memory_directory = load_directory_seed(Path(settings.directory_seed_path))
    logger.warning("BOOKING_PG_DSN not set; using in-memory booking stores seeded from %s.", settings.directory_seed_path)
  else:
    memory_directory = InMemoryDirectory()
    logger.warning("BOOKING_PG_DSN not set; using in-memory booking stores with an empty directory. Set BOOKING_DIRECTORY_SEED_PATH to load translators and customers; until then every job gets no candidates.")
  return assemble_services(
    settings,
    job_store=InMemoryJobStore(),
    distance_store=InMemoryDistanceStore(),
    translators=memory_directory,
    customers=memory_directory,
    transport=transport,
  )
