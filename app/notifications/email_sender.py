"""Email delivery implementations.

MailerSend is used via its HTTP API (not SMTP): a JSON POST to `{base_url}/email`
with a bearer token. Accepted messages come back as 202 with the id in the
`X-Message-Id` header.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from app.notifications.contracts import EmailNotification, EmailSender, NotificationProviderError, TransientProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailerSendConfig:
  """MailerSend configuration needed to send emails."""

  api_key: str
  from_address: str
  from_name: str | None
  timeout_seconds: float
  base_url: str = "https://api.mailersend.com/v1"


class MailerSendEmailSender(EmailSender):
  """MailerSend-backed email sender using the provider API."""

  def __init__(self, *, config: MailerSendConfig, client: httpx.Client | None = None) -> None:
    self._config = config
    self._client = client or httpx.Client(base_url=config.base_url, timeout=config.timeout_seconds)

  def send(self, notification: EmailNotification) -> str | None:
    """Send an email using the MailerSend API and return the provider message id."""
    from_payload: dict[str, str] = {"email": self._config.from_address}
    if self._config.from_name:
      from_payload["name"] = self._config.from_name

    to_payload: dict[str, str] = {"email": notification.to_address}
    if notification.to_name:
      to_payload["name"] = notification.to_name

    payload: dict[str, object] = {"from": from_payload, "to": [to_payload], "subject": notification.subject, "text": notification.text, "html": notification.html}
    headers = {"Authorization": f"Bearer {self._config.api_key}", "Accept": "application/json"}

    try:
      response = self._client.post("/email", json=payload, headers=headers)
      response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      status_code = exc.response.status_code
      logger.error("MailerSend email request failed status=%s body=%s", status_code, exc.response.text[:200])
      if status_code == 429 or status_code >= 500:
        raise TransientProviderError(f"Transient MailerSend failure (status={status_code})") from exc
      raise NotificationProviderError(f"Email delivery failed (status={status_code})") from exc
    except httpx.RequestError as exc:
      logger.error("MailerSend email request failed: %s", exc)
      raise TransientProviderError(f"MailerSend unreachable: {exc}") from exc

    return response.headers.get("x-message-id")

  def close(self) -> None:
    self._client.close()


class NullEmailSender(EmailSender):
  """No-op email sender used when notifications are disabled."""

  def send(self, notification: EmailNotification) -> str | None:
    """Drop the notification while recording a debug log."""
    logger.debug("Email notifications disabled; dropping email subject=%s", notification.subject)
    return None
