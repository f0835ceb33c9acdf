from __future__ import annotations

import time
from unittest.mock import MagicMock

import pytest
from app.notifications.contracts import EmailContent, EmailNotification, InvalidPushTokenError, NotificationProviderError, PushContent, PushNotification, TransientProviderError
from app.notifications.transport import SenderTransport

CONTENT = PushContent(title="Booking cancelled", body="Your booking was cancelled.", data={"job_id": "J1", "event": "cancelled"})


def _transport(push_sender=None, sms_sender=None, email_sender=None, timeout_seconds: float = 2.0) -> SenderTransport:
  return SenderTransport(push_sender=push_sender or MagicMock(), sms_sender=sms_sender or MagicMock(), email_sender=email_sender or MagicMock(), timeout_seconds=timeout_seconds)


@pytest.mark.anyio
async def test_push_success_carries_provider_id():
  push_sender = MagicMock()
  push_sender.send.return_value = "fcm-1"

  result = await _transport(push_sender=push_sender).send_push("token-T1", CONTENT)

  assert result.ok
  assert result.provider_message_id == "fcm-1"
  notification = push_sender.send.call_args[0][0]
  assert notification == PushNotification(token="token-T1", title=CONTENT.title, body=CONTENT.body, data=CONTENT.data)


@pytest.mark.anyio
@pytest.mark.parametrize(
  ("error", "transient"),
  [
    (InvalidPushTokenError("unregistered"), False),
    (TransientProviderError("unavailable"), True),
    (NotificationProviderError("quota"), False),
    (RuntimeError("boom"), False),
  ],
)
async def test_push_failures_become_results(error, transient):
  push_sender = MagicMock()
  push_sender.send.side_effect = error

  result = await _transport(push_sender=push_sender).send_push("token-T1", CONTENT)

  assert result.status == "failed"
  assert result.transient is transient


@pytest.mark.anyio
async def test_push_timeout_is_transient_failure():
  push_sender = MagicMock()
  push_sender.send.side_effect = lambda notification: time.sleep(0.5)

  result = await _transport(push_sender=push_sender, timeout_seconds=0.05).send_push("token-T1", CONTENT)

  assert result.status == "failed"
  assert result.transient
  assert "timed out" in result.error


@pytest.mark.anyio
async def test_sms_provider_error_is_reported():
  sms_sender = MagicMock()
  sms_sender.send.side_effect = NotificationProviderError("SMS delivery failed (status=400)")

  result = await _transport(sms_sender=sms_sender).send_sms("+46700001", "hi")

  assert result.status == "failed"
  assert result.error == "SMS delivery failed (status=400)"
  assert not result.transient


@pytest.mark.anyio
async def test_sms_success():
  sms_sender = MagicMock()
  sms_sender.send.return_value = "msg-1"

  result = await _transport(sms_sender=sms_sender).send_sms("+46700001", "hi")

  assert result.ok
  assert result.provider_message_id == "msg-1"


@pytest.mark.anyio
async def test_email_success_builds_notification():
  email_sender = MagicMock()
  email_sender.send.return_value = "ms-1"
  content = EmailContent(subject="Booking received", text="We have received your booking.", html="<p>We have received your booking.</p>")

  result = await _transport(email_sender=email_sender).send_email("anna@example.com", "Anna", content)

  assert result.ok
  assert result.provider_message_id == "ms-1"
  assert email_sender.send.call_args[0][0] == EmailNotification(to_address="anna@example.com", to_name="Anna", subject=content.subject, text=content.text, html=content.html)


@pytest.mark.anyio
async def test_email_transient_failure_is_flagged():
  email_sender = MagicMock()
  email_sender.send.side_effect = TransientProviderError("Transient MailerSend failure (status=503)")

  result = await _transport(email_sender=email_sender).send_email("anna@example.com", None, EmailContent(subject="s", text="t", html="h"))

  assert result.status == "failed"
  assert result.transient
