"""Best-effort fan-out of booking events over push, SMS and email."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from app.bookings.errors import NotFoundError, ValidationError
from app.bookings.models import Job, JobStatus
from app.notifications.contracts import EMAIL_ONLY_KINDS, SMS_ELIGIBLE_KINDS, Channel, DeliveryResult, DispatchReport, EventKind, NotificationEvent, NotificationTransport, Recipient
from app.notifications.templates import render_email, render_push, render_sms
from app.storage.job_store import CustomerDirectory, JobStore, TranslatorDirectory
from app.utils.timeouts import bounded

logger = logging.getLogger(__name__)

_DUE_FORMAT = "%Y-%m-%d %H:%M UTC"


def job_payload(job: Job) -> dict[str, Any]:
  """Flatten the job fields notification templates need."""
  return {
    "job_id": job.job_id,
    "from_language": job.from_language,
    "to_language": job.to_language,
    "due": job.due_at.strftime(_DUE_FORMAT),
    "duration_minutes": job.duration_minutes,
    "location": job.town if job.on_site and job.town else "phone",
    "immediate": job.immediate,
    "session_time": job.session_time,
  }


class NotificationDispatcher:
  """Dispatches lifecycle events; delivery failures are reported, never raised."""

  def __init__(self, *, transport: NotificationTransport, job_store: JobStore, translators: TranslatorDirectory, customers: CustomerDirectory, store_timeout_seconds: float) -> None:
    self._transport = transport
    self._job_store = job_store
    self._translators = translators
    self._customers = customers
    self._store_timeout_seconds = store_timeout_seconds

  async def dispatch(self, event: NotificationEvent, *, channels: Iterable[Channel] | None = None) -> DispatchReport:
    """Attempt every (target, channel) pair concurrently and collect the results."""
    if not event.targets:
      raise ValidationError(f"Event {event.kind.value} for job {event.job_id} has no targets.")
    job = await bounded(self._job_store.get(event.job_id), timeout_seconds=self._store_timeout_seconds, operation="job lookup")
    if job is None:
      raise ValidationError(f"Event {event.kind.value} references unknown job {event.job_id}.")

    selected = frozenset(channels) if channels is not None else self._default_channels(event.kind)
    if not selected:
      raise ValidationError("At least one channel must be selected.")

    # Drop duplicate targets so each recipient gets one attempt per channel.
    targets: dict[str, Recipient] = {}
    for target in event.targets:
      targets.setdefault(target.user_id, target)

    attempts = [(target, channel) for target in targets.values() for channel in (Channel.PUSH, Channel.SMS, Channel.EMAIL) if channel in selected]
    outcomes = await asyncio.gather(*(self._attempt(event, target, channel) for target, channel in attempts))

    results: dict[str, dict[Channel, DeliveryResult]] = {user_id: {} for user_id in targets}
    for (target, channel), outcome in zip(attempts, outcomes, strict=True):
      results[target.user_id][channel] = outcome

    report = DispatchReport(job_id=event.job_id, kind=event.kind, results=results)
    failures = report.failures()
    logger.info("Dispatched event=%s job_id=%s targets=%d attempted=%d failed=%d", event.kind.value, event.job_id, len(targets), report.attempted, len(failures))
    return report

  async def notify(self, job: Job, kind: EventKind, *, translator_ids: Iterable[str] = (), include_customer: bool = False, channels: Iterable[Channel] | None = None) -> DispatchReport | None:
    """Resolve contacts, build the event and dispatch it. Returns None when nobody is reachable."""
    targets = await self._resolve_recipients(job, translator_ids=translator_ids, include_customer=include_customer)
    if not targets:
      logger.debug("No recipients for event=%s job_id=%s", kind.value, job.job_id)
      return None
    event = NotificationEvent(job_id=job.job_id, kind=kind, targets=targets, payload=job_payload(job))
    return await self.dispatch(event, channels=channels)

  async def resend_push(self, job_id: str) -> DispatchReport:
    """Re-send the current push notification to the job's current recipients."""
    return await self._resend(job_id, Channel.PUSH)

  async def resend_sms(self, job_id: str) -> DispatchReport:
    """Re-send the current SMS to the job's current recipients."""
    return await self._resend(job_id, Channel.SMS)

  async def _resend(self, job_id: str, channel: Channel) -> DispatchReport:
    job = await bounded(self._job_store.get(job_id), timeout_seconds=self._store_timeout_seconds, operation="job lookup")
    if job is None:
      raise NotFoundError("job", job_id)

    # Resends address whoever is current now, not who was notified before.
    if job.status == JobStatus.OFFERED:
      kind, translator_ids = EventKind.REOFFER, job.candidate_ids
    elif job.status in {JobStatus.ACCEPTED, JobStatus.IN_PROGRESS} and job.translator_id:
      kind, translator_ids = EventKind.REMINDER, (job.translator_id,)
    else:
      raise ValidationError(f"Job {job_id} has no current recipients (status={job.status.value}).")

    report = await self.notify(job, kind, translator_ids=translator_ids, channels=(channel,))
    if report is None:
      raise ValidationError(f"Job {job_id} has no reachable recipients.")
    return report

  async def _resolve_recipients(self, job: Job, *, translator_ids: Iterable[str], include_customer: bool) -> tuple[Recipient, ...]:
    ids = list(dict.fromkeys(translator_ids))
    lookups = [bounded(self._translators.get_translator(translator_id), timeout_seconds=self._store_timeout_seconds, operation="translator lookup") for translator_id in ids]
    translators = await asyncio.gather(*lookups)

    recipients: list[Recipient] = []
    if include_customer:
      customer = await bounded(self._customers.get_customer(job.customer_id), timeout_seconds=self._store_timeout_seconds, operation="customer lookup")
      if customer is None:
        logger.warning("Customer missing from directory customer_id=%s job_id=%s", job.customer_id, job.job_id)
      else:
        # A contact email given with the booking wins over the profile address.
        recipients.append(Recipient(user_id=customer.customer_id, role="customer", push_token=customer.push_token, phone_number=customer.phone_number, email=job.user_email or customer.email, name=customer.name))

    for translator_id, translator in zip(ids, translators, strict=True):
      if translator is None:
        logger.warning("Translator missing from directory translator_id=%s job_id=%s", translator_id, job.job_id)
        continue
      recipients.append(Recipient(user_id=translator.translator_id, role="translator", push_token=translator.push_token, phone_number=translator.phone_number, name=translator.name))

    return tuple(recipients)

  @staticmethod
  def _default_channels(kind: EventKind) -> frozenset[Channel]:
    if kind in EMAIL_ONLY_KINDS:
      return frozenset({Channel.EMAIL})
    if kind in SMS_ELIGIBLE_KINDS:
      return frozenset({Channel.PUSH, Channel.SMS})
    return frozenset({Channel.PUSH})

  async def _attempt(self, event: NotificationEvent, target: Recipient, channel: Channel) -> DeliveryResult:
    """Run one channel attempt; any exception becomes a failed result."""
    try:
      if channel == Channel.PUSH:
        if not target.push_token:
          return DeliveryResult.skipped("no push token")
        content = render_push(kind=event.kind, role=target.role, data=event.payload)
        return await self._transport.send_push(target.push_token, content)

      if channel == Channel.SMS:
        if not target.phone_number:
          return DeliveryResult.skipped("no phone number")
        text = render_sms(kind=event.kind, role=target.role, data=event.payload)
        return await self._transport.send_sms(target.phone_number, text)

      if not target.email:
        return DeliveryResult.skipped("no email address")
      email = render_email(kind=event.kind, data=event.payload | {"recipient_name": target.name or ""})
      return await self._transport.send_email(target.email, target.name, email)

    except Exception as exc:  # noqa: BLE001
      logger.error("Notification attempt failed event=%s job_id=%s user_id=%s channel=%s error=%s", event.kind.value, event.job_id, target.user_id, channel.value, exc, exc_info=True)
      return DeliveryResult.failed(f"{type(exc).__name__}: {exc}")
