"""Push notification delivery implementations."""

from __future__ import annotations

import logging
import time

import firebase_admin
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from app.notifications.contracts import InvalidPushTokenError, NotificationProviderError, PushNotification, PushSender, TransientProviderError

logger = logging.getLogger(__name__)

_OFFER_TTL_SECONDS = 3600


class FirebasePushSender(PushSender):
  """Firebase Cloud Messaging sender with retry and invalid-token handling."""

  def __init__(self, *, app: firebase_admin.App | None = None, backoff_seconds: tuple[float, ...] = (0.5, 1.0)) -> None:
    self._app = app
    self._backoff_seconds = backoff_seconds

  def send(self, notification: PushNotification) -> str | None:
    """Send one FCM message with bounded retries for transient failures."""
    message = messaging.Message(
      token=notification.token,
      notification=messaging.Notification(title=notification.title, body=notification.body),
      data=notification.data,
      android=messaging.AndroidConfig(priority="high", ttl=_OFFER_TTL_SECONDS),
      apns=messaging.APNSConfig(payload=messaging.APNSPayload(aps=messaging.Aps(sound="default"))),
    )

    for attempt in range(len(self._backoff_seconds) + 1):
      try:
        return messaging.send(message, app=self._app)
      except messaging.UnregisteredError as exc:
        raise InvalidPushTokenError("Push token is no longer registered") from exc
      except (firebase_exceptions.UnavailableError, firebase_exceptions.InternalError, firebase_exceptions.DeadlineExceededError) as exc:
        if attempt < len(self._backoff_seconds):
          # Back off briefly to avoid amplifying transient provider incidents.
          time.sleep(self._backoff_seconds[attempt])
          continue
        raise TransientProviderError(f"Transient push provider failure after retries ({exc.code})") from exc
      except firebase_exceptions.FirebaseError as exc:
        raise NotificationProviderError(f"Push delivery failed ({exc.code})") from exc

    return None


class NullPushSender(PushSender):
  """No-op push sender used when push notifications are disabled or unconfigured."""

  def send(self, notification: PushNotification) -> str | None:
    """Drop the notification while recording a debug log."""
    logger.debug("Push notifications disabled; dropping push title=%s", notification.title)
    return None
