"""Notification transport over synchronous push, SMS and email senders."""

from __future__ import annotations

import asyncio
import logging

from starlette.concurrency import run_in_threadpool

from app.notifications.contracts import (
  DeliveryResult,
  EmailContent,
  EmailNotification,
  EmailSender,
  InvalidPushTokenError,
  NotificationProviderError,
  NotificationTransport,
  PushContent,
  PushNotification,
  PushSender,
  SmsNotification,
  SmsSender,
  TransientProviderError,
)

logger = logging.getLogger(__name__)


class SenderTransport(NotificationTransport):
  """Runs blocking senders in the threadpool and turns every outcome into a DeliveryResult."""

  def __init__(self, *, push_sender: PushSender, sms_sender: SmsSender, email_sender: EmailSender, timeout_seconds: float) -> None:
    self._push_sender = push_sender
    self._sms_sender = sms_sender
    self._email_sender = email_sender
    self._timeout_seconds = timeout_seconds

  async def send_push(self, token: str, content: PushContent) -> DeliveryResult:
    notification = PushNotification(token=token, title=content.title, body=content.body, data=content.data)
    try:
      message_id = await asyncio.wait_for(run_in_threadpool(self._push_sender.send, notification), timeout=self._timeout_seconds)
    except TimeoutError:
      logger.error("Push delivery timed out after %ss", self._timeout_seconds)
      return DeliveryResult.failed("push delivery timed out", transient=True)
    except InvalidPushTokenError as exc:
      logger.warning("Push token rejected: %s", exc)
      return DeliveryResult.failed(str(exc))
    except TransientProviderError as exc:
      logger.error("Push notification delivery failed (transient): %s", exc)
      return DeliveryResult.failed(str(exc), transient=True)
    except NotificationProviderError as exc:
      # Provider errors are often expected (bad token format, quota); skip the traceback.
      logger.error("Push notification delivery failed (provider error): %s", exc)
      return DeliveryResult.failed(str(exc))
    except Exception as exc:  # noqa: BLE001
      logger.error("Push notification delivery failed: %s", exc, exc_info=True)
      return DeliveryResult.failed(f"{type(exc).__name__}: {exc}")
    return DeliveryResult.sent(message_id)

  async def send_sms(self, number: str, text: str) -> DeliveryResult:
    notification = SmsNotification(to_number=number, text=text)
    try:
      message_id = await asyncio.wait_for(run_in_threadpool(self._sms_sender.send, notification), timeout=self._timeout_seconds)
    except TimeoutError:
      logger.error("SMS delivery timed out after %ss", self._timeout_seconds)
      return DeliveryResult.failed("sms delivery timed out", transient=True)
    except TransientProviderError as exc:
      logger.error("SMS delivery failed (transient): %s", exc)
      return DeliveryResult.failed(str(exc), transient=True)
    except NotificationProviderError as exc:
      logger.error("SMS delivery failed (provider error): %s", exc)
      return DeliveryResult.failed(str(exc))
    except Exception as exc:  # noqa: BLE001
      logger.error("SMS delivery failed: %s", exc, exc_info=True)
      return DeliveryResult.failed(f"{type(exc).__name__}: {exc}")
    return DeliveryResult.sent(message_id)

  async def send_email(self, address: str, name: str | None, content: EmailContent) -> DeliveryResult:
    notification = EmailNotification(to_address=address, to_name=name, subject=content.subject, text=content.text, html=content.html)
    try:
      message_id = await asyncio.wait_for(run_in_threadpool(self._email_sender.send, notification), timeout=self._timeout_seconds)
    except TimeoutError:
      logger.error("Email delivery timed out after %ss", self._timeout_seconds)
      return DeliveryResult.failed("email delivery timed out", transient=True)
    except TransientProviderError as exc:
      logger.error("Email delivery failed (transient): %s", exc)
      return DeliveryResult.failed(str(exc), transient=True)
    except NotificationProviderError as exc:
      logger.error("Email delivery failed (provider error): %s", exc)
      return DeliveryResult.failed(str(exc))
    except Exception as exc:  # noqa: BLE001
      logger.error("Email delivery failed: %s", exc, exc_info=True)
      return DeliveryResult.failed(f"{type(exc).__name__}: {exc}")
    return DeliveryResult.sent(message_id)
