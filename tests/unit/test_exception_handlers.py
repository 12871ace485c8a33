from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from blockforge.core.errors import ArtifactNotFoundError, BlockForgeError, InfraError, InvalidInputError, JobNotFoundError, ToolchainError, ValidationError
from blockforge.core.exceptions import _coerce_json_safe, _sanitize_http_detail, _sanitize_validation_errors, blockforge_exception_handler, status_for_error


@pytest.mark.parametrize(
  ("error", "expected"),
  [
    (InvalidInputError("bad"), 400),
    (ValidationError("bad source"), 422),
    (JobNotFoundError("missing"), 404),
    (ArtifactNotFoundError("missing"), 404),
    (InfraError("db down"), 503),
    (ToolchainError("odd"), 500),
  ],
)
def test_status_for_error(error: BlockForgeError, expected: int) -> None:
  assert status_for_error(error) == expected


def test_validation_errors_drop_raw_input() -> None:
  errors = [{"type": "missing", "loc": ("body", "source"), "msg": "Field required", "input": {"source": "secret"}, "ctx": {"input": "secret", "limit": 3}}]

  sanitized = _sanitize_validation_errors(errors)

  assert sanitized == [{"type": "missing", "loc": ["body", "source"], "msg": "Field required", "ctx": {"limit": 3}}]


def test_http_detail_strips_payload_keys() -> None:
  detail = {"message": "nope", "source": "contract X {}", "nested": [{"body": "x", "keep": 1}]}
  assert _sanitize_http_detail(detail) == {"message": "nope", "nested": [{"keep": 1}]}


def test_coerce_json_safe_handles_exceptions_and_sets() -> None:
  assert _coerce_json_safe(ValueError("boom")) == "ValueError: boom"
  assert _coerce_json_safe(KeyError()) == "KeyError"
  assert _coerce_json_safe({1: {"a"}}) == {"1": ["a"]}


def _app_raising(error: BlockForgeError) -> FastAPI:
  app = FastAPI()
  app.add_exception_handler(BlockForgeError, blockforge_exception_handler)

  @app.get("/boom")
  async def boom() -> None:
    raise error

  return app


def test_client_errors_keep_their_message() -> None:
  client = TestClient(_app_raising(JobNotFoundError("Job not found.")))

  response = client.get("/boom")

  assert response.status_code == 404
  assert response.json() == {"detail": {"code": "JOB_NOT_FOUND", "message": "Job not found."}}


def test_infra_errors_hide_internal_details() -> None:
  client = TestClient(_app_raising(InfraError("postgres at 10.0.0.5 refused connection")))

  response = client.get("/boom")

  assert response.status_code == 503
  assert response.json()["detail"] == {"code": "INFRA_FAILURE", "message": "Service temporarily unavailable. Please retry later."}
  assert "10.0.0.5" not in response.text
