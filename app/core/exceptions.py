import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import Settings, get_settings
from app.video.errors import InfrastructureFailure, StoreError

logger = logging.getLogger("uvicorn.error")

_SERVICE_UNAVAILABLE_MSG = "Video job store is temporarily unavailable."


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    message = str(value)
    if message:
      return f"{type(value).__name__}: {message}"
    return type(value).__name__
  return str(value)


def _error_payload(detail: Any, settings: Settings, *, request_id: str | None = None, error: str | None = None) -> dict[str, Any]:
  """Build an error body; diagnostics are attached only in debug mode."""
  payload: dict[str, Any] = {"detail": detail}
  if request_id:
    payload["requestId"] = request_id
  if settings.debug and error is not None:
    payload["error"] = error
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx
    sanitized.append(_coerce_json_safe(scrubbed))
  return sanitized


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Catch unhandled errors and answer with an opaque 500."""
  settings = get_settings()
  request_id = _request_id(request)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", settings, request_id=request_id, error=f"{type(exc).__name__}: {exc}"))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors for debugging without leaking payloads."""
  settings = get_settings()
  request_id = _request_id(request)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, settings, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle HTTPExceptions, masking 5xx details."""
  settings = get_settings()
  request_id = _request_id(request)
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", settings, request_id=request_id, error=f"{type(exc).__name__}: {exc}"))

  if settings.log_http_4xx:
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)

  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, settings, request_id=request_id), headers=exc.headers)


async def infrastructure_failure_handler(request: Request, exc: InfrastructureFailure) -> JSONResponse:
  """Report an aborted sweep as 503 together with the counts gathered before it stopped."""
  settings = get_settings()
  request_id = _request_id(request)
  logger.error("Sweep aborted request_id=%s path=%s summary=%s", request_id, request.url.path, exc.summary.message, exc_info=True)
  payload = _error_payload(_SERVICE_UNAVAILABLE_MSG, settings, request_id=request_id)
  payload["summary"] = exc.summary.to_dict()
  return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=payload)


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
  """Answer 503 when a request-path store call fails."""
  settings = get_settings()
  request_id = _request_id(request)
  logger.error("Store failure request_id=%s path=%s error=%s", request_id, request.url.path, exc)
  return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=_error_payload(_SERVICE_UNAVAILABLE_MSG, settings, request_id=request_id))
