import logging
import time
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

from app.utils.ids import generate_request_id

logger = logging.getLogger("app.core.middleware")


def _build_request_url(scope: Scope) -> str:
  """Path plus query string, read from the scope so bodies are never touched."""
  path = scope.get("path", "")
  query_string = scope.get("query_string", b"")
  if query_string:
    return f"{path}?{query_string.decode('latin-1')}"
  return path


class RequestLoggingMiddleware:
  """Log request metadata and latency, and tag each response with a request id."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    request_id = generate_request_id()
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.perf_counter()
    method = scope.get("method", "UNKNOWN")
    url = _build_request_url(scope)
    logger.info("Incoming request request_id=%s %s %s", request_id, method, url)

    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id
      await send(message)

    await self.app(scope, receive, send_wrapper)

    process_time = (time.perf_counter() - start_time) * 1000
    logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code or 0, process_time)


class SecurityHeadersMiddleware:
  """Strip server-identifying headers and mark responses as non-cacheable JSON."""

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
        # Video status changes every sweep; intermediaries must not cache it.
        headers["cache-control"] = "no-store"
      await send(message)

    await self.app(scope, receive, send_wrapper)
