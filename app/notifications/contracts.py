"""Contracts for booking notification delivery channels."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Protocol

DeliveryStatus = Literal["sent", "failed", "skipped"]


class Channel(str, Enum):
  """Delivery channel for a notification attempt."""

  PUSH = "push"
  SMS = "sms"
  EMAIL = "email"


class EventKind(str, Enum):
  """Lifecycle events that fan out to translators or customers."""

  OFFER = "offer"
  REOFFER = "reoffer"
  ACCEPTED = "accepted"
  CANCELLED = "cancelled"
  ENDED = "ended"
  REOPENED = "reopened"
  REMINDER = "reminder"
  CONFIRMATION = "confirmation"


SMS_ELIGIBLE_KINDS = frozenset({EventKind.OFFER, EventKind.REOFFER})
EMAIL_ONLY_KINDS = frozenset({EventKind.CONFIRMATION})


@dataclass(frozen=True)
class Recipient:
  """A notification target with its contact channels."""

  user_id: str
  role: Literal["translator", "customer"]
  push_token: str | None = None
  phone_number: str | None = None
  email: str | None = None
  name: str | None = None


@dataclass(frozen=True)
class NotificationEvent:
  """One lifecycle event addressed to a set of recipients."""

  job_id: str
  kind: EventKind
  targets: tuple[Recipient, ...]
  payload: dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class PushContent:
  """Rendered push notification content."""

  title: str
  body: str
  data: dict[str, str] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class PushNotification:
  """A push notification addressed to one device token."""

  token: str
  title: str
  body: str
  data: dict[str, str]


@dataclass(frozen=True)
class SmsNotification:
  """An SMS addressed to one phone number."""

  to_number: str
  text: str


@dataclass(frozen=True)
class EmailContent:
  """Rendered email subject and bodies."""

  subject: str
  text: str
  html: str


@dataclass(frozen=True)
class EmailNotification:
  """An email addressed to one mailbox."""

  to_address: str
  to_name: str | None
  subject: str
  text: str
  html: str


@dataclass(frozen=True)
class DeliveryResult:
  """Outcome of one channel attempt for one recipient."""

  status: DeliveryStatus
  provider_message_id: str | None = None
  error: str | None = None
  transient: bool = False

  @property
  def ok(self) -> bool:
    return self.status == "sent"

  @classmethod
  def sent(cls, provider_message_id: str | None = None) -> DeliveryResult:
    return cls(status="sent", provider_message_id=provider_message_id)

  @classmethod
  def failed(cls, error: str, *, transient: bool = False) -> DeliveryResult:
    return cls(status="failed", error=error, transient=transient)

  @classmethod
  def skipped(cls, reason: str) -> DeliveryResult:
    return cls(status="skipped", error=reason)


@dataclass(frozen=True)
class DispatchReport:
  """Per-recipient, per-channel delivery results for one event."""

  job_id: str
  kind: EventKind
  results: dict[str, dict[Channel, DeliveryResult]] = field(default_factory=dict, hash=False)

  def failures(self) -> list[tuple[str, Channel, DeliveryResult]]:
    """List every failed attempt as (recipient id, channel, result)."""
    return [(user_id, channel, result) for user_id, channels in self.results.items() for channel, result in channels.items() if result.status == "failed"]

  @property
  def attempted(self) -> int:
    return sum(1 for channels in self.results.values() for result in channels.values() if result.status != "skipped")


class NotificationError(Exception):
  """Base class for all notification delivery failures."""


class NotificationProviderError(NotificationError):
  """Exception raised when a provider (FCM, SMS gateway) rejects a delivery."""


class InvalidPushTokenError(NotificationProviderError):
  """Exception raised when a device token is expired or unregistered."""


class TransientProviderError(NotificationProviderError):
  """Exception raised when transient provider failures exhaust retries."""


class PushSender(Protocol):
  """Delivery contract for sending push notifications."""

  def send(self, notification: PushNotification) -> str | None:
    """Send a push notification synchronously and return the provider message id."""


class SmsSender(Protocol):
  """Delivery contract for sending SMS messages."""

  def send(self, notification: SmsNotification) -> str | None:
    """Send an SMS synchronously and return the provider message id."""


class EmailSender(Protocol):
  """Delivery contract for sending email notifications."""

  def send(self, notification: EmailNotification) -> str | None:
    """Send an email synchronously and return the provider message id."""


class NotificationTransport(Protocol):
  """Channel transport used by the dispatcher. Never raises for delivery failures."""

  async def send_push(self, token: str, content: PushContent) -> DeliveryResult:
    """Attempt one push delivery."""

  async def send_sms(self, number: str, text: str) -> DeliveryResult:
    """Attempt one SMS delivery."""

  async def send_email(self, address: str, name: str | None, content: EmailContent) -> DeliveryResult:
    """Attempt one email delivery."""
