"""Bounded waits for store, lock and transport I/O."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from app.bookings.errors import TransientError

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], *, timeout_seconds: float, operation: str) -> T:
  """Await with a deadline; a timeout becomes a retryable TransientError."""
  try:
    return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
  except TimeoutError as exc:
    raise TransientError(f"{operation} timed out after {timeout_seconds:g}s") from exc
