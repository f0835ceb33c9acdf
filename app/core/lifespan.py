import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from app.bookings.factory import build_booking_services
from app.config import get_settings
from app.core.database import dispose_engine
from app.core.firebase import initialize_firebase
from app.core.logging import initialize_logging
from app.notifications.factory import build_transport


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging, Firebase and the booking services before serving requests."""
  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  try:
    initialize_logging(settings)
  except RuntimeError:
    # File logging is optional; stdout still works through uvicorn's handlers.
    logger.warning("Logging setup failed; continuing with default handlers.", exc_info=True)

  push_ready = initialize_firebase(settings) if settings.push_notifications_enabled else False
  if settings.push_notifications_enabled and not push_ready:
    logger.warning("Push notifications enabled but Firebase is unavailable; push delivery disabled.")

  transport = build_transport(settings, push_ready=push_ready)
  app.state.booking_services = build_booking_services(settings, transport=transport)
  logger.info("Startup complete env=%s store=%s", settings.environment, _redact_dsn(settings.pg_dsn))

  try:
    yield
  finally:
    await dispose_engine()
    logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<in-memory>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
