import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from blockforge.core.errors import ArtifactNotFoundError, BlockForgeError, ErrorCode, InfraError, InvalidInputError, JobNotFoundError, ValidationError

_GENERIC_INFRA_MESSAGE = "Service temporarily unavailable. Please retry later."

# Errors whose message is safe to hand back to the caller, with their status codes.
_CLIENT_ERROR_STATUS: tuple[tuple[type[BlockForgeError], int], ...] = (
  (InvalidInputError, status.HTTP_400_BAD_REQUEST),
  (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
  (JobNotFoundError, status.HTTP_404_NOT_FOUND),
  (ArtifactNotFoundError, status.HTTP_404_NOT_FOUND),
)


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  # Keep native JSON primitives unchanged.
  if value is None or isinstance(value, bool | int | float | str):
    return value
  # Recursively sanitize mapping values so nested contexts remain serializable.
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  # Normalize iterable containers to lists for deterministic JSON encoding.
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  # Render exceptions as "Type: message" instead of their repr.
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  # Fall back to string coercion for arbitrary objects.
  return str(value)


def _error_payload(detail: Any, *, request_id: str | None = None) -> dict[str, Any]:
  """Build a safe error payload that avoids leaking internal details to clients."""
  payload: dict[str, Any] = {"detail": detail}
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  # Strip payload values so logs stay useful without echoing contract source.
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    # Remove nested input values from context payloads as well.
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


def _sanitize_http_detail(detail: Any) -> Any:
  """Return an HTTPException detail payload safe for logs."""
  # Redact payload keys, including submitted source, while keeping structure.
  if isinstance(detail, dict):
    return {key: _sanitize_http_detail(value) for key, value in detail.items() if key not in {"input", "body", "payload", "source"}}

  # Normalize lists of detail entries.
  if isinstance(detail, list):
    return [_sanitize_http_detail(item) for item in detail]

  return detail


def status_for_error(exc: BlockForgeError) -> int:
  # Client errors map by type; anything else is a server-side failure.
  for error_type, status_code in _CLIENT_ERROR_STATUS:
    if isinstance(exc, error_type):
      return status_code
  if isinstance(exc, InfraError):
    return status.HTTP_503_SERVICE_UNAVAILABLE
  return status.HTTP_500_INTERNAL_SERVER_ERROR


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  logger = logging.getLogger("uvicorn.error")
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  # Callers only ever see the generic code; the traceback stays in the logs.
  detail = {"code": ErrorCode.INFRA_FAILURE.value, "message": "Internal Server Error"}
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload(detail, request_id=request_id))


async def blockforge_exception_handler(request: Request, exc: BlockForgeError) -> JSONResponse:
  """Render typed domain errors as ``{"detail": {"code", "message"}}``."""
  logger = logging.getLogger("uvicorn.error")
  request_id = getattr(request.state, "request_id", None)
  status_code = status_for_error(exc)

  if status_code >= 500:
    # Infrastructure details stay in the logs.
    logger.error("Service failure request_id=%s path=%s code=%s error=%s", request_id, request.url.path, exc.code, exc.message, exc_info=exc)
    message = _GENERIC_INFRA_MESSAGE if isinstance(exc, InfraError) else "Internal Server Error"
    detail = {"code": exc.code.value, "message": message}
    return JSONResponse(status_code=status_code, content=_error_payload(detail, request_id=request_id))

  # Domain rejections are expected traffic, so they log at info without a traceback.
  logger.info("Rejected request request_id=%s path=%s status_code=%s code=%s", request_id, request.url.path, status_code, exc.code)
  detail = {"code": exc.code.value, "message": exc.message}
  return JSONResponse(status_code=status_code, content=_error_payload(detail, request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors for debugging without leaking payloads."""
  request_id = getattr(request.state, "request_id", None)
  sanitized_errors = _sanitize_validation_errors(list(exc.errors()))
  # Keep validation logs concise because 422s are client-correctable and expected.
  logger = logging.getLogger("uvicorn.error")
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  detail = {"code": ErrorCode.INVALID_INPUT.value, "message": "Request validation failed.", "errors": sanitized_errors}
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(detail, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle FastAPI HTTPExceptions while avoiding leaking internal diagnostics."""
  from blockforge.config import get_settings

  settings = get_settings()
  request_id = getattr(request.state, "request_id", None)
  # Log 5xx HTTPExceptions with a traceback; do not expose `exc.detail` to callers.
  if exc.status_code >= 500:
    logger = logging.getLogger("uvicorn.error")
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  # Log 4xx HTTPExceptions when explicitly enabled for debugging.
  if settings.log_http_4xx:
    logger = logging.getLogger("uvicorn.error")
    sanitized_detail = _sanitize_http_detail(exc.detail)
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, sanitized_detail)

  # Preserve 4xx details for client-correctable errors.
  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id), headers=getattr(exc, "headers", None))
