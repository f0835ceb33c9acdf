"""Factory helpers for notification delivery."""

from __future__ import annotations

import logging

from app.config import Settings
from app.notifications.contracts import EmailSender, PushSender, SmsSender
from app.notifications.email_sender import MailerSendConfig, MailerSendEmailSender, NullEmailSender
from app.notifications.push_sender import FirebasePushSender, NullPushSender
from app.notifications.sms_sender import HttpSmsSender, NullSmsSender, SmsGatewayConfig
from app.notifications.transport import SenderTransport

logger = logging.getLogger(__name__)


def build_transport(settings: Settings, *, push_ready: bool | None = None) -> SenderTransport:
  """Construct the push/SMS/email transport based on environment configuration."""
  # Push needs an initialized Firebase app on top of the enable flag.
  effective_push_enabled = settings.push_notifications_enabled if push_ready is None else bool(settings.push_notifications_enabled and push_ready)
  if effective_push_enabled:
    push_sender: PushSender = FirebasePushSender()
  else:
    push_sender = NullPushSender()

  # SMS is disabled by default to avoid accidental delivery in dev/test.
  if settings.sms_notifications_enabled and settings.sms_gateway_url and settings.sms_username and settings.sms_password and settings.sms_sender_id:
    config = SmsGatewayConfig(base_url=settings.sms_gateway_url, username=settings.sms_username, password=settings.sms_password, sender_id=settings.sms_sender_id, timeout_seconds=settings.sms_timeout_seconds)
    sms_sender: SmsSender = HttpSmsSender(config=config)
  else:
    sms_sender = NullSmsSender()

  # Email is disabled by default as well.
  if settings.email_notifications_enabled and settings.mailersend_api_key and settings.email_from_address:
    mailersend_config = MailerSendConfig(api_key=settings.mailersend_api_key, from_address=settings.email_from_address, from_name=settings.email_from_name, timeout_seconds=settings.mailersend_timeout_seconds, base_url=settings.mailersend_base_url)
    email_sender: EmailSender = MailerSendEmailSender(config=mailersend_config)
  else:
    email_sender = NullEmailSender()

  logger.info("Notification transport ready push=%s sms=%s email=%s", type(push_sender).__name__, type(sms_sender).__name__, type(email_sender).__name__)
  return SenderTransport(push_sender=push_sender, sms_sender=sms_sender, email_sender=email_sender, timeout_seconds=settings.transport_timeout_seconds)
