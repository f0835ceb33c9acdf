"""Test configuration and in-memory wiring for the booking services."""

from __future__ import annotations

import os
import sys
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

os.environ.setdefault("BOOKING_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("BOOKING_ENV", "test")

import pytest  # noqa: E402

from app.bookings.engine import JobLifecycleEngine, OfferPolicy  # noqa: E402
from app.bookings.locks import JobLocks  # noqa: E402
from app.bookings.matcher import TranslatorMatcher  # noqa: E402
from app.bookings.models import Customer  # noqa: E402
from app.bookings.queries import JobQueries  # noqa: E402
from app.bookings.reconciler import DistanceReconciler  # noqa: E402
from app.notifications.dispatcher import NotificationDispatcher  # noqa: E402
from app.storage.memory_store import InMemoryDirectory, InMemoryDistanceStore, InMemoryJobStore  # noqa: E402

from tests.support import BookingHarness, FakeClock, FakeTransport, make_translator  # noqa: E402


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
  return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
  return FakeTransport()


@pytest.fixture
def directory() -> InMemoryDirectory:
  return InMemoryDirectory(
    translators=[make_translator("T1"), make_translator("T2")],
    customers=[Customer(customer_id="C1", name="Customer One", push_token="token-C1", phone_number="+46700001000", email="c1@example.com")],
  )


@pytest.fixture
def harness(clock, transport, directory) -> BookingHarness:
  job_store = InMemoryJobStore()
  distance_store = InMemoryDistanceStore()
  locks = JobLocks(acquire_timeout_seconds=2.0)
  matcher = TranslatorMatcher(directory=directory, job_store=job_store, store_timeout_seconds=2.0)
  dispatcher = NotificationDispatcher(transport=transport, job_store=job_store, translators=directory, customers=directory, store_timeout_seconds=2.0)
  engine = JobLifecycleEngine(
    job_store=job_store,
    translators=directory,
    customers=directory,
    matcher=matcher,
    dispatcher=dispatcher,
    locks=locks,
    offer_policy=OfferPolicy(window=timedelta(minutes=15)),
    store_timeout_seconds=2.0,
    clock=clock,
  )
  return BookingHarness(
    engine=engine,
    reconciler=DistanceReconciler(job_store=job_store, distance_store=distance_store, locks=locks, store_timeout_seconds=2.0),
    dispatcher=dispatcher,
    matcher=matcher,
    queries=JobQueries(job_store=job_store, store_timeout_seconds=2.0),
    job_store=job_store,
    distance_store=distance_store,
    directory=directory,
    transport=transport,
    clock=clock,
    locks=locks,
  )
