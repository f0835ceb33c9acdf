from __future__ import annotations

import pytest
from app.config import get_settings

_MANAGED = (
  "BOOKING_ENV",
  "BOOKING_DEBUG",
  "BOOKING_PG_DSN",
  "DATABASE_URL",
  "BOOKING_OFFER_WINDOW_SECONDS",
  "BOOKING_STORE_TIMEOUT_SECONDS",
  "BOOKING_LOG_BACKUP_COUNT",
  "BOOKING_PUSH_NOTIFICATIONS_ENABLED",
  "FIREBASE_PROJECT_ID",
  "BOOKING_SMS_NOTIFICATIONS_ENABLED",
  "BOOKING_SMS_GATEWAY_URL",
  "BOOKING_SMS_USERNAME",
  "BOOKING_SMS_PASSWORD",
  "BOOKING_SMS_SENDER_ID",
  "BOOKING_EMAIL_NOTIFICATIONS_ENABLED",
  "BOOKING_EMAIL_FROM_ADDRESS",
  "BOOKING_MAILERSEND_API_KEY",
  "BOOKING_DIRECTORY_SEED_PATH",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
  for name in _MANAGED:
    monkeypatch.delenv(name, raising=False)
  monkeypatch.setenv("BOOKING_ALLOWED_ORIGINS", "http://localhost:3000, https://app.example.com")
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


def test_defaults():
  settings = get_settings()

  assert settings.environment == "development"
  assert settings.allowed_origins == ("http://localhost:3000", "https://app.example.com")
  assert settings.pg_dsn is None
  assert settings.offer_window_seconds == 900
  assert settings.store_timeout_seconds == 5.0
  assert not settings.push_notifications_enabled
  assert not settings.sms_notifications_enabled
  assert not settings.email_notifications_enabled
  assert settings.mailersend_base_url == "https://api.mailersend.com/v1"
  assert settings.directory_seed_path is None
  assert not settings.is_production


def test_database_url_fallback(monkeypatch):
  monkeypatch.setenv("DATABASE_URL", "postgresql://bookings@db/bookings")

  assert get_settings().pg_dsn == "postgresql://bookings@db/bookings"


def test_settings_are_cached(monkeypatch):
  first = get_settings()
  monkeypatch.setenv("BOOKING_OFFER_WINDOW_SECONDS", "60")

  assert get_settings() is first


@pytest.mark.parametrize(
  "env",
  [
    {"BOOKING_ALLOWED_ORIGINS": "*"},
    {"BOOKING_ALLOWED_ORIGINS": " , "},
    {"BOOKING_ENV": "production"},
    {"BOOKING_OFFER_WINDOW_SECONDS": "0"},
    {"BOOKING_STORE_TIMEOUT_SECONDS": "-1"},
    {"BOOKING_LOG_BACKUP_COUNT": "-1"},
    {"BOOKING_PUSH_NOTIFICATIONS_ENABLED": "true"},
    {"BOOKING_SMS_NOTIFICATIONS_ENABLED": "yes"},
    {"BOOKING_EMAIL_NOTIFICATIONS_ENABLED": "true", "BOOKING_MAILERSEND_API_KEY": "ms-key"},
    {"BOOKING_EMAIL_NOTIFICATIONS_ENABLED": "true", "BOOKING_EMAIL_FROM_ADDRESS": "bookings@example.com"},
    {"BOOKING_SMS_NOTIFICATIONS_ENABLED": "1", "BOOKING_SMS_GATEWAY_URL": "https://sms.example.test", "BOOKING_SMS_USERNAME": "user", "BOOKING_SMS_PASSWORD": "secret"},
    {"BOOKING_ENV": "production", "BOOKING_PG_DSN": "postgresql://db/bookings", "BOOKING_SMS_NOTIFICATIONS_ENABLED": "1", "BOOKING_SMS_GATEWAY_URL": "http://sms.example.test", "BOOKING_SMS_USERNAME": "user", "BOOKING_SMS_PASSWORD": "secret", "BOOKING_SMS_SENDER_ID": "Bookings"},
  ],
)
def test_invalid_configuration_is_rejected(monkeypatch, env):
  for name, value in env.items():
    monkeypatch.setenv(name, value)

  with pytest.raises(ValueError):
    get_settings()


def test_complete_notification_configuration(monkeypatch):
  monkeypatch.setenv("BOOKING_PUSH_NOTIFICATIONS_ENABLED", "on")
  monkeypatch.setenv("FIREBASE_PROJECT_ID", "bookings-demo")
  monkeypatch.setenv("BOOKING_SMS_NOTIFICATIONS_ENABLED", "true")
  monkeypatch.setenv("BOOKING_SMS_GATEWAY_URL", "https://sms.example.test")
  monkeypatch.setenv("BOOKING_SMS_USERNAME", "user")
  monkeypatch.setenv("BOOKING_SMS_PASSWORD", "secret")
  monkeypatch.setenv("BOOKING_SMS_SENDER_ID", "Bookings")
  monkeypatch.setenv("BOOKING_EMAIL_NOTIFICATIONS_ENABLED", "yes")
  monkeypatch.setenv("BOOKING_EMAIL_FROM_ADDRESS", "bookings@example.com")
  monkeypatch.setenv("BOOKING_MAILERSEND_API_KEY", "ms-key")

  settings = get_settings()

  assert settings.push_notifications_enabled
  assert settings.firebase_project_id == "bookings-demo"
  assert settings.sms_sender_id == "Bookings"
  assert settings.email_from_address == "bookings@example.com"
