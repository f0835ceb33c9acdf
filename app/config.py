"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the booking service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_max_bytes: int
  log_backup_count: int
  pg_dsn: str | None
  pg_connect_timeout: int
  offer_window_seconds: int
  store_timeout_seconds: float
  lock_timeout_seconds: float
  transport_timeout_seconds: float
  push_notifications_enabled: bool
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  sms_notifications_enabled: bool
  sms_gateway_url: str | None
  sms_username: str | None
  sms_password: str | None
  sms_sender_id: str | None
  sms_timeout_seconds: float
  email_notifications_enabled: bool
  email_from_address: str | None
  email_from_name: str | None
  mailersend_api_key: str | None
  mailersend_timeout_seconds: float
  mailersend_base_url: str
  directory_seed_path: str | None

  @property
  def is_production(self) -> bool:
    return self.environment == "production"


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("BOOKING_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("BOOKING_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("BOOKING_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("BOOKING_ENV", "development").strip().lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("BOOKING_DEBUG"))

  log_max_bytes = _positive_int("BOOKING_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("BOOKING_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("BOOKING_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Support fallback to DATABASE_URL for hosted Postgres add-ons.
  pg_dsn = _optional_str(os.getenv("BOOKING_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))
  pg_connect_timeout = _positive_int("BOOKING_PG_CONNECT_TIMEOUT", "5")
  if pg_dsn is None and environment == "production":
    raise ValueError("BOOKING_PG_DSN must be set in production; in-memory stores are for development only.")

  offer_window_seconds = _positive_int("BOOKING_OFFER_WINDOW_SECONDS", "900")
  store_timeout_seconds = _positive_float("BOOKING_STORE_TIMEOUT_SECONDS", "5")
  lock_timeout_seconds = _positive_float("BOOKING_LOCK_TIMEOUT_SECONDS", "10")
  transport_timeout_seconds = _positive_float("BOOKING_TRANSPORT_TIMEOUT_SECONDS", "15")

  push_notifications_enabled = _parse_bool(os.getenv("BOOKING_PUSH_NOTIFICATIONS_ENABLED"))
  firebase_project_id = _optional_str(os.getenv("FIREBASE_PROJECT_ID"))
  firebase_service_account_json_path = _optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH"))

  sms_notifications_enabled = _parse_bool(os.getenv("BOOKING_SMS_NOTIFICATIONS_ENABLED"))
  sms_gateway_url = _optional_str(os.getenv("BOOKING_SMS_GATEWAY_URL"))
  sms_username = _optional_str(os.getenv("BOOKING_SMS_USERNAME"))
  sms_password = _optional_str(os.getenv("BOOKING_SMS_PASSWORD"))
  sms_sender_id = _optional_str(os.getenv("BOOKING_SMS_SENDER_ID"))
  sms_timeout_seconds = _positive_float("BOOKING_SMS_TIMEOUT_SECONDS", "10")

  email_notifications_enabled = _parse_bool(os.getenv("BOOKING_EMAIL_NOTIFICATIONS_ENABLED"))
  email_from_address = _optional_str(os.getenv("BOOKING_EMAIL_FROM_ADDRESS"))
  email_from_name = _optional_str(os.getenv("BOOKING_EMAIL_FROM_NAME"))
  mailersend_api_key = _optional_str(os.getenv("BOOKING_MAILERSEND_API_KEY"))
  mailersend_timeout_seconds = _positive_float("BOOKING_MAILERSEND_TIMEOUT_SECONDS", "10")
  mailersend_base_url = (os.getenv("BOOKING_MAILERSEND_BASE_URL") or "https://api.mailersend.com/v1").strip()

  # Translators and customers for in-memory runs; ignored when a DSN is set.
  directory_seed_path = _optional_str(os.getenv("BOOKING_DIRECTORY_SEED_PATH"))

  # Validate push configuration only when push notifications are enabled.
  if push_notifications_enabled and not firebase_project_id:
    raise ValueError("FIREBASE_PROJECT_ID must be set when push notifications are enabled.")

  # Validate gateway settings only when SMS is enabled.
  if sms_notifications_enabled:
    if not sms_gateway_url:
      raise ValueError("BOOKING_SMS_GATEWAY_URL must be set when SMS notifications are enabled.")

    if not sms_gateway_url.startswith("https://") and environment == "production":
      raise ValueError("BOOKING_SMS_GATEWAY_URL must use https in production.")

    if not sms_username or not sms_password:
      raise ValueError("BOOKING_SMS_USERNAME and BOOKING_SMS_PASSWORD must be set when SMS notifications are enabled.")

    if not sms_sender_id:
      raise ValueError("BOOKING_SMS_SENDER_ID must be set when SMS notifications are enabled.")

  # Validate provider settings only when email is enabled.
  if email_notifications_enabled:
    if not email_from_address:
      raise ValueError("BOOKING_EMAIL_FROM_ADDRESS must be set when email notifications are enabled.")

    if not mailersend_api_key:
      raise ValueError("BOOKING_MAILERSEND_API_KEY must be set when email notifications are enabled.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("BOOKING_ALLOWED_ORIGINS")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    pg_dsn=pg_dsn,
    pg_connect_timeout=pg_connect_timeout,
    offer_window_seconds=offer_window_seconds,
    store_timeout_seconds=store_timeout_seconds,
    lock_timeout_seconds=lock_timeout_seconds,
    transport_timeout_seconds=transport_timeout_seconds,
    push_notifications_enabled=push_notifications_enabled,
    firebase_project_id=firebase_project_id,
    firebase_service_account_json_path=firebase_service_account_json_path,
    sms_notifications_enabled=sms_notifications_enabled,
    sms_gateway_url=sms_gateway_url,
    sms_username=sms_username,
    sms_password=sms_password,
    sms_sender_id=sms_sender_id,
    sms_timeout_seconds=sms_timeout_seconds,
    email_notifications_enabled=email_notifications_enabled,
    email_from_address=email_from_address,
    email_from_name=email_from_name,
    mailersend_api_key=mailersend_api_key,
    mailersend_timeout_seconds=mailersend_timeout_seconds,
    mailersend_base_url=mailersend_base_url,
    directory_seed_path=directory_seed_path,
  )
