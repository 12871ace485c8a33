from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, model_validator
from pydantic.alias_generators import to_camel

from blockforge.blocks.models import TargetLanguage
from blockforge.jobs.models import ExternalJobStatus

CONTRACT_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"
MAX_BLOCKS = 64
MAX_OPTIMIZER_RUNS = 1_000_000

_REQUEST_CONFIG = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)
_RESPONSE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CompileRequest(BaseModel):
  """Shared payload for compile submissions: raw source or a block list, never both."""

  contract_name: StrictStr = Field(min_length=1, max_length=64, pattern=CONTRACT_NAME_PATTERN, description="Contract (and crate) name.", examples=["MyToken"])
  source: StrictStr | None = Field(default=None, description="Contract source text.")
  blocks: list[dict[str, Any]] | None = Field(default=None, min_length=1, max_length=MAX_BLOCKS, description="Block list to generate source from.")
  model_config = _REQUEST_CONFIG

  @model_validator(mode="after")
  def require_one_input(self) -> CompileRequest:
    if (self.source is None) == (self.blocks is None):
      raise ValueError("Provide exactly one of source or blocks.")
    return self


class EvmCompileRequest(CompileRequest):
  """Compile Solidity with solc."""

  optimizer_runs: StrictInt | None = Field(default=None, ge=0, le=MAX_OPTIMIZER_RUNS, description="solc optimizer runs (defaults to the service setting).")


class StellarCompileRequest(CompileRequest):
  """Compile a Soroban contract to WASM."""

  network: Literal["testnet", "mainnet"] = Field(default="testnet", description="Target Stellar network.")


class GenerateRequest(BaseModel):
  blocks: list[dict[str, Any]] = Field(default_factory=list, max_length=MAX_BLOCKS)
  target: TargetLanguage = TargetLanguage.SOLIDITY
  model_config = _REQUEST_CONFIG


class ValidateRequest(BaseModel):
  source: StrictStr
  target: TargetLanguage = TargetLanguage.SOLIDITY
  model_config = _REQUEST_CONFIG


class JobCreateResponse(BaseModel):
  """Response payload for job creation."""

  job_id: StrictStr
  request_id: StrictStr
  status: ExternalJobStatus = "pending"
  model_config = _RESPONSE_CONFIG


class JobError(BaseModel):
  code: StrictStr
  message: StrictStr
  diagnostics: StrictStr | None = None


class JobStatusResponse(BaseModel):
  """Status payload for a compilation job."""

  job_id: StrictStr
  status: ExternalJobStatus
  progress: float = Field(ge=0, le=100)
  contract_type: Literal["evm", "stellar"] | None = None
  phase: StrictStr | None = None
  created_at: StrictStr
  completed_at: StrictStr | None = None
  result: dict[str, Any] | None = None
  error: JobError | None = None
  model_config = _RESPONSE_CONFIG


class QueueMetricsResponse(BaseModel):
  """Job counts by queue state."""

  waiting: int
  active: int
  completed: int
  failed: int
  workers: int
  model_config = _RESPONSE_CONFIG


class GenerateResponse(BaseModel):
  target_language: TargetLanguage
  contract_name: StrictStr | None = None
  text: StrictStr
  abi_preview: list[dict[str, Any]] | None = None
  model_config = _RESPONSE_CONFIG


class ValidateResponse(BaseModel):
  """Response model for source pre-check results."""

  valid: bool
  error: StrictStr | None = None
  code: StrictStr | None = None
