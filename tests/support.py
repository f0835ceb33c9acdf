"""Fakes and builders shared by the unit and integration tests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

from app.bookings.engine import JobLifecycleEngine
from app.bookings.locks import JobLocks
from app.bookings.matcher import TranslatorMatcher
from app.bookings.models import Translator
from app.bookings.queries import JobQueries
from app.bookings.reconciler import DistanceReconciler
from app.config import Settings
from app.notifications.contracts import DeliveryResult, EmailContent, PushContent
from app.notifications.dispatcher import NotificationDispatcher
from app.storage.memory_store import InMemoryDirectory, InMemoryDistanceStore, InMemoryJobStore

START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
  """Controllable clock for offer-window tests."""

  def __init__(self, now: datetime = START) -> None:
    self.now = now

  def __call__(self) -> datetime:
    return self.now

  def advance(self, **kwargs: float) -> None:
    self.now += timedelta(**kwargs)


@dataclass
class FakeTransport:
  """Records every delivery; tokens, numbers or addresses listed in failing_* fail."""

  failing_tokens: set[str] = field(default_factory=set)
  failing_numbers: set[str] = field(default_factory=set)
  failing_addresses: set[str] = field(default_factory=set)
  pushes: list[tuple[str, PushContent]] = field(default_factory=list)
  sms: list[tuple[str, str]] = field(default_factory=list)
  emails: list[tuple[str, EmailContent]] = field(default_factory=list)

  async def send_push(self, token: str, content: PushContent) -> DeliveryResult:
    self.pushes.append((token, content))
    if token in self.failing_tokens:
      return DeliveryResult.failed("push provider rejected token")
    return DeliveryResult.sent(f"push-{len(self.pushes)}")

  async def send_sms(self, number: str, text: str) -> DeliveryResult:
    self.sms.append((number, text))
    if number in self.failing_numbers:
      return DeliveryResult.failed("gateway unavailable", transient=True)
    return DeliveryResult.sent(f"sms-{len(self.sms)}")

  async def send_email(self, address: str, name: str | None, content: EmailContent) -> DeliveryResult:
    self.emails.append((address, content))
    if address in self.failing_addresses:
      return DeliveryResult.failed("mail provider rejected address")
    return DeliveryResult.sent(f"email-{len(self.emails)}")

  def push_tokens(self) -> list[str]:
    return [token for token, _ in self.pushes]

  def push_events(self, token: str) -> list[str]:
    return [content.data["event"] for sent_to, content in self.pushes if sent_to == token]

  def clear(self) -> None:
    self.pushes.clear()
    self.sms.clear()
    self.emails.clear()


def make_translator(translator_id: str, **overrides) -> Translator:
  base = Translator(
    translator_id=translator_id,
    name=f"Translator {translator_id}",
    languages=frozenset({"en", "de"}),
    towns=frozenset({"Stockholm"}),
    push_token=f"token-{translator_id}",
    phone_number=f"+4670000{translator_id[-1]}",
  )
  return replace(base, **overrides)


def make_settings(**overrides) -> Settings:
  base = Settings(
    environment="test",
    debug=False,
    allowed_origins=("http://localhost:3000",),
    log_max_bytes=1024,
    log_backup_count=1,
    pg_dsn=None,
    pg_connect_timeout=5,
    offer_window_seconds=900,
    store_timeout_seconds=2.0,
    lock_timeout_seconds=2.0,
    transport_timeout_seconds=2.0,
    push_notifications_enabled=False,
    firebase_project_id=None,
    firebase_service_account_json_path=None,
    sms_notifications_enabled=False,
    sms_gateway_url=None,
    sms_username=None,
    sms_password=None,
    sms_sender_id=None,
    sms_timeout_seconds=5.0,
    email_notifications_enabled=False,
    email_from_address=None,
    email_from_name=None,
    mailersend_api_key=None,
    mailersend_timeout_seconds=5.0,
    mailersend_base_url="https://api.mailersend.com/v1",
    directory_seed_path=None,
  )
  return replace(base, **overrides)


@dataclass
class BookingHarness:
  """In-memory booking services sharing one clock, one lock map and one transport."""

  engine: JobLifecycleEngine
  reconciler: DistanceReconciler
  dispatcher: NotificationDispatcher
  matcher: TranslatorMatcher
  queries: JobQueries
  job_store: InMemoryJobStore
  distance_store: InMemoryDistanceStore
  directory: InMemoryDirectory
  transport: FakeTransport
  clock: FakeClock
  locks: JobLocks

