import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.bookings.errors import BookingError, ConflictError, ForbiddenError, InvalidStateError, NotFoundError, TransientError, ValidationError

logger = logging.getLogger("uvicorn.error")

_BOOKING_STATUS: tuple[tuple[type[BookingError], int], ...] = (
  (ValidationError, status.HTTP_400_BAD_REQUEST),
  (ForbiddenError, status.HTTP_403_FORBIDDEN),
  (NotFoundError, status.HTTP_404_NOT_FOUND),
  (ConflictError, status.HTTP_409_CONFLICT),
  (InvalidStateError, status.HTTP_409_CONFLICT),
  (TransientError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def _error_payload(detail: Any, *, request_id: str | None = None, extra: dict[str, Any] | None = None) -> dict[str, Any]:
  """Build an error payload; the request id lets support correlate reports with logs."""
  payload: dict[str, Any] = {"detail": detail}
  if extra:
    payload.update(extra)
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    # Remove nested input values from context payloads as well.
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


def booking_status_code(exc: BookingError) -> int:
  """Map a booking error to its HTTP status."""
  for error_type, status_code in _BOOKING_STATUS:
    if isinstance(exc, error_type):
      return status_code
  return status.HTTP_500_INTERNAL_SERVER_ERROR


async def booking_exception_handler(request: Request, exc: BookingError) -> JSONResponse:
  """Translate booking errors into client-facing responses."""
  request_id = getattr(request.state, "request_id", None)
  status_code = booking_status_code(exc)
  extra: dict[str, Any] = {"error": type(exc).__name__}
  if isinstance(exc, InvalidStateError):
    extra.update(currentState=exc.current_state, requestedState=exc.requested_state)

  if status_code >= 500:
    logger.error("Booking failure request_id=%s path=%s error_type=%s error=%s", request_id, request.url.path, type(exc).__name__, exc)
  else:
    logger.info("Booking request rejected request_id=%s path=%s status=%s error=%s", request_id, request.url.path, status_code, exc)

  headers = {"Retry-After": "1"} if isinstance(exc, TransientError) else None
  return JSONResponse(status_code=status_code, content=_error_payload(str(exc), request_id=request_id, extra=extra), headers=headers)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors for debugging without leaking payloads."""
  request_id = getattr(request.state, "request_id", None)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  # Keep validation logs concise because 422s are client-correctable and expected.
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle FastAPI HTTPExceptions without exposing 5xx details."""
  request_id = getattr(request.state, "request_id", None)
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id), headers=getattr(exc, "headers", None))
