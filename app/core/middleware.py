import logging
import time
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("app.core.middleware")

_MAX_REQUEST_ID_LENGTH = 128


def _request_id(headers: Headers) -> str:
  """Reuse the gateway's request id when it looks sane, otherwise mint one."""
  incoming = (headers.get("x-request-id") or "").strip()
  if incoming and len(incoming) <= _MAX_REQUEST_ID_LENGTH and incoming.isprintable():
    return incoming
  return str(uuid.uuid4())


def _describe_actor(headers: Headers) -> str:
  actor_id = headers.get("x-actor-id")
  if not actor_id:
    return "anonymous"
  return f"{headers.get('x-actor-role', '?')}:{actor_id}"


class RequestLoggingMiddleware:
  """Log one line per request and response, tagged with the request id and acting user."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    headers = Headers(scope=scope)
    request_id = _request_id(headers)
    # Exception handlers read the id from request.state.
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.perf_counter()
    method = scope.get("method", "UNKNOWN")
    path = scope.get("path", "")
    logger.info("Incoming request request_id=%s actor=%s %s %s", request_id, _describe_actor(headers), method, path)

    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        MutableHeaders(scope=message)["x-request-id"] = request_id

      await send(message)

    try:
      await self.app(scope, receive, send_wrapper)
    finally:
      elapsed_ms = (time.perf_counter() - start_time) * 1000
      logger.info("Response request_id=%s %s %s status=%s (took %.2fms)", request_id, method, path, status_code or 0, elapsed_ms)


class SecurityHeadersMiddleware:
  """Drop server fingerprints and keep booking responses out of shared caches."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: dict[str, Any]) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for name in ("x-powered-by", "server"):
          if name in headers:
            del headers[name]
        headers["x-content-type-options"] = "nosniff"
        headers.setdefault("cache-control", "no-store")

      await send(message)

    await self.app(scope, receive, send_wrapper)
