import logging
import time
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

from blockforge.utils.ids import generate_request_id

logger = logging.getLogger("blockforge.core.middleware")


def _build_request_url(scope: Scope) -> str:
  """Build a readable URL path for logging without relying on Request bodies."""
  # Include the query string so the log line mirrors the request target.
  path = scope.get("path", "")
  query_string = scope.get("query_string", b"")
  if query_string:
    return f"{path}?{query_string.decode('latin-1')}"

  return path


def _incoming_request_id(scope: Scope) -> str | None:
  """Reuse a caller-supplied x-request-id when it looks sane."""
  # Header names arrive as raw bytes in the ASGI scope.
  for key, value in scope.get("headers", []):
    if key.decode("latin-1").lower() == "x-request-id":
      candidate = value.decode("latin-1").strip()
      # Oversized or control-character ids are replaced rather than echoed into logs.
      if 0 < len(candidate) <= 128 and candidate.isprintable():
        return candidate
  return None


class RequestLoggingMiddleware:
  """Log request metadata and attach a request id to every response."""

  def __init__(self, app: ASGIApp) -> None:
    """Store the downstream ASGI application for request logging."""
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    """Record request/response metadata without reading compile payloads."""
    # Pass websocket and lifespan scopes straight through.
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    # Store the request id for downstream handlers and exception logging.
    request_id = _incoming_request_id(scope) or generate_request_id()
    scope.setdefault("state", {})["request_id"] = request_id

    # Start timing early so latency includes downstream handlers.
    start_time = time.time()
    method = scope.get("method", "UNKNOWN")
    url = _build_request_url(scope)
    logger.info("Incoming request request_id=%s %s %s", request_id, method, url)

    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      # Track the response status from the response start message.
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        # Echo the request id so clients can quote it when reporting a failed job.
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id

      await send(message)

    await self.app(scope, receive, send_wrapper)

    # Emit response timing for operational visibility.
    process_time = (time.time() - start_time) * 1000
    logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code or 0, process_time)


class SecurityHeadersMiddleware:
  """Middleware to strip sensitive headers from responses."""

  def __init__(self, app: ASGIApp) -> None:
    """Store the downstream ASGI application."""
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    """Intercept response headers to remove server fingerprints."""
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: dict[str, Any]) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        # Strip X-Powered-By if present
        if "x-powered-by" in headers:
          del headers["x-powered-by"]
        # Strip Server if present (Uvicorn may still add its own later)
        if "server" in headers:
          del headers["server"]
        # Artifact downloads are served as JSON or octet streams; never sniff them.
        headers["x-content-type-options"] = "nosniff"

      await send(message)

    await self.app(scope, receive, send_wrapper)
