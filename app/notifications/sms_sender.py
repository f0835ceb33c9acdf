"""SMS delivery implementations.

The gateway is a plain HTTP API: form-encoded POST to `{base_url}/sms` with
basic auth, answering with a JSON body that carries the message id.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx

from app.notifications.contracts import NotificationProviderError, SmsNotification, SmsSender, TransientProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SmsGatewayConfig:
  """Configuration needed to talk to the SMS gateway."""

  base_url: str
  username: str
  password: str
  sender_id: str
  timeout_seconds: float = 10.0


class HttpSmsSender(SmsSender):
  """`httpx` backed SMS sender with retries for 5xx and network errors."""

  def __init__(self, *, config: SmsGatewayConfig, client: httpx.Client | None = None, backoff_seconds: tuple[float, ...] = (0.5, 1.0)) -> None:
    self._config = config
    self._client = client or httpx.Client(base_url=config.base_url, timeout=config.timeout_seconds, auth=(config.username, config.password))
    self._backoff_seconds = backoff_seconds

  def send(self, notification: SmsNotification) -> str | None:
    """Send one SMS and return the gateway's message id."""
    form = {"from": self._config.sender_id, "to": notification.to_number, "message": notification.text}

    for attempt in range(len(self._backoff_seconds) + 1):
      try:
        response = self._client.post("/sms", data=form)
        response.raise_for_status()
      except httpx.HTTPStatusError as exc:
        status_code = exc.response.status_code
        if status_code >= 500 and attempt < len(self._backoff_seconds):
          time.sleep(self._backoff_seconds[attempt])
          continue
        if status_code >= 500:
          raise TransientProviderError(f"Transient SMS gateway failure after retries (status={status_code})") from exc
        logger.error("SMS gateway rejected message status=%s body=%s", status_code, exc.response.text[:200])
        raise NotificationProviderError(f"SMS delivery failed (status={status_code})") from exc
      except httpx.RequestError as exc:
        if attempt < len(self._backoff_seconds):
          time.sleep(self._backoff_seconds[attempt])
          continue
        raise TransientProviderError(f"SMS gateway unreachable: {exc}") from exc

      return _extract_message_id(response)

    return None

  def close(self) -> None:
    self._client.close()


class NullSmsSender(SmsSender):
  """No-op SMS sender used when SMS notifications are disabled."""

  def send(self, notification: SmsNotification) -> str | None:
    """Drop the message while recording a debug log."""
    logger.debug("SMS notifications disabled; dropping sms length=%d", len(notification.text))
    return None


def _extract_message_id(response: httpx.Response) -> str | None:
  """Pull a message id out of the gateway response when one is present."""
  try:
    body = response.json()
  except ValueError:
    return None
  if not isinstance(body, dict):
    return None
  message_id = body.get("id") or body.get("message_id")
  return str(message_id) if message_id else None
