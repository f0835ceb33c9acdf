"""Shared FastAPI dependencies for booking routes."""

from __future__ import annotations

import logging

from fastapi import Depends, Header, HTTPException, Request, status

from app.bookings.factory import BookingServices
from app.bookings.models import Actor, ActorRole

logger = logging.getLogger(__name__)


def get_services(request: Request) -> BookingServices:
  """Return the booking services built at startup."""
  services = getattr(request.app.state, "booking_services", None)
  if services is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Booking services are not initialized.")
  return services


async def get_current_actor(x_actor_id: str | None = Header(default=None), x_actor_role: str | None = Header(default=None)) -> Actor:
  """Read the acting user forwarded by the API gateway."""
  if not x_actor_id or not x_actor_id.strip() or not x_actor_role:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing actor headers.")
  try:
    role = ActorRole(x_actor_role.strip().lower())
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown actor role.") from exc
  return Actor(actor_id=x_actor_id.strip(), role=role)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:  # noqa: B008
  """Reject non-admin actors."""
  if not actor.is_privileged:
    logger.info("Admin-only route refused actor_id=%s role=%s", actor.actor_id, actor.role.value)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required.")
  return actor
