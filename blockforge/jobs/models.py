"""Domain models for asynchronous compilation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

JobStatus = Literal["queued", "running", "completed", "failed"]
JobKind = Literal["compile-evm", "compile-stellar"]
ExternalJobStatus = Literal["pending", "processing", "completed", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

# Status only moves forward; there is no cancel and no retry edge.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
  "queued": frozenset({"running"}),
  "running": frozenset({"completed", "failed"}),
  "completed": frozenset(),
  "failed": frozenset(),
}

CONTRACT_TYPE_BY_KIND: dict[str, str] = {"compile-evm": "evm", "compile-stellar": "stellar"}


def ensure_transition(from_status: str, to_status: str) -> None:
  """Raise ValueError for a transition the state machine does not allow."""
  allowed = ALLOWED_TRANSITIONS.get(from_status)
  if allowed is None or to_status not in allowed:
    raise ValueError(f"Illegal job transition: {from_status} -> {to_status}")


@dataclass
class JobRecord:
  """Represents a background compilation job."""

  job_id: str
  request_id: str
  job_kind: JobKind
  contract_name: str
  request: dict[str, Any]
  status: JobStatus
  source_hash: str
  created_at: str
  updated_at: str
  started_at: str | None = None
  completed_at: str | None = None
  progress: float = 0.0
  phase: str | None = None
  artifact_id: str | None = None
  result_json: dict[str, Any] | None = None
  error_json: dict[str, Any] | None = None
  logs: list[str] = field(default_factory=list)

  @property
  def contract_type(self) -> str:
    return CONTRACT_TYPE_BY_KIND[self.job_kind]

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES

  @property
  def error_message(self) -> str | None:
    if not self.error_json:
      return None
    return self.error_json.get("message")
