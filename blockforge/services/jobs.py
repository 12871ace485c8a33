"""Job submission and status projection for the compile API."""

from __future__ import annotations

import logging
import time
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from blockforge.api.models import CompileRequest, EvmCompileRequest, JobCreateResponse, JobError, JobStatusResponse, StellarCompileRequest
from blockforge.blocks.models import TargetLanguage, parse_blocks
from blockforge.codegen.generator import generate_source
from blockforge.compiler.toolchain import CompileInput
from blockforge.compiler.validator import validate_source
from blockforge.config import Settings
from blockforge.core.errors import BlockForgeError, ErrorCode, InfraError, InvalidInputError, JobNotFoundError
from blockforge.jobs.models import CONTRACT_TYPE_BY_KIND, ExternalJobStatus, JobKind, JobRecord, JobStatus
from blockforge.jobs.queue import CompilationQueue
from blockforge.storage.jobs_repo import JobsRepository
from blockforge.utils.ids import generate_job_id, source_hash

logger = logging.getLogger(__name__)

_JOB_NOT_FOUND_MSG = "Job not found."
_STATUS_UNAVAILABLE_MSG = "Job status is temporarily unavailable."

_EXTERNAL_STATUS: dict[JobStatus, ExternalJobStatus] = {"queued": "pending", "running": "processing", "completed": "completed", "failed": "failed"}
_LANGUAGE_BY_KIND: dict[JobKind, TargetLanguage] = {"compile-evm": TargetLanguage.SOLIDITY, "compile-stellar": TargetLanguage.RUST_SOROBAN}


def _now_iso() -> str:
  return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def to_external_status(status: JobStatus) -> ExternalJobStatus:
  return _EXTERNAL_STATUS[status]


def _resolve_source(payload: CompileRequest, language: TargetLanguage) -> tuple[str, str | None]:
  """Return the source to compile and, for block submissions, the generated contract name."""
  if payload.source is not None:
    return payload.source, None

  generated = generate_source(parse_blocks(payload.blocks or []), language)
  if generated.is_placeholder:
    raise InvalidInputError("Block list must contain an enabled erc20 or nft base block.")
  return generated.text, generated.contract_name


async def submit_job(payload: EvmCompileRequest | StellarCompileRequest, *, kind: JobKind, settings: Settings, queue: CompilationQueue, request_id: str) -> JobCreateResponse:
  """Validate a compile submission and enqueue it without waiting for compilation.

  Invalid input and rejected source raise before anything is persisted.
  """
  language = _LANGUAGE_BY_KIND[kind]
  source, generated_name = _resolve_source(payload, language)
  validate_source(source, language, max_bytes=settings.max_source_bytes).raise_for_error()

  entry_contract = payload.contract_name
  if kind == "compile-evm" and generated_name is not None:
    entry_contract = generated_name

  compile_input = CompileInput(
    job_kind=kind,
    source=source,
    contract_name=payload.contract_name,
    entry_contract=entry_contract,
    network=payload.network if isinstance(payload, StellarCompileRequest) else None,
    optimizer_runs=payload.optimizer_runs if isinstance(payload, EvmCompileRequest) else None,
  )

  timestamp = _now_iso()
  record = JobRecord(
    job_id=generate_job_id(),
    request_id=request_id,
    job_kind=kind,
    contract_name=payload.contract_name,
    request=compile_input.to_request(),
    status="queued",
    source_hash=source_hash(source),
    created_at=timestamp,
    updated_at=timestamp,
    phase="queued",
  )

  try:
    job_id = await queue.submit(record)
  except SQLAlchemyError as exc:
    raise InfraError("Failed to persist compilation job", code=ErrorCode.INFRA_FAILURE) from exc

  return JobCreateResponse(job_id=job_id, request_id=request_id, status="pending")


def _error_from_record(record: JobRecord) -> JobError | None:
  if record.status != "failed":
    return None
  error_json: dict[str, Any] = record.error_json or {}
  return JobError(code=str(error_json.get("code") or ErrorCode.INFRA_FAILURE.value), message=str(error_json.get("message") or "Compilation failed."), diagnostics=error_json.get("diagnostics"))


def _record_to_response(record: JobRecord, queue: CompilationQueue | None) -> JobStatusResponse:
  status = record.status
  progress = record.progress
  phase = record.phase

  live = queue.live_state(record.job_id) if queue is not None else None
  # The worker's in-memory view is fresher than the durable row until the job is terminal.
  if live is not None and not record.is_terminal:
    status = live.status
    progress = live.progress
    phase = live.phase or phase

  if status == "queued":
    progress = 0.0
  elif status in ("completed", "failed"):
    progress = 100.0

  return JobStatusResponse(
    job_id=record.job_id,
    status=to_external_status(status),
    progress=progress,
    contract_type=CONTRACT_TYPE_BY_KIND[record.job_kind],  # type: ignore[arg-type]
    phase=phase,
    created_at=record.created_at,
    completed_at=record.completed_at,
    result=record.result_json if status == "completed" else None,
    error=_error_from_record(record) if status == "failed" else None,
  )


async def get_job_status(job_id: str, *, jobs_repo: JobsRepository, queue: CompilationQueue | None = None) -> JobStatusResponse:
  """Project a job record into its external status.

  An unknown id raises ``JobNotFoundError``; a repository failure is
  reported as a failed status with a generic infrastructure error.
  """
  try:
    record = await jobs_repo.get_job(job_id)
  except (SQLAlchemyError, BlockForgeError) as exc:
    logger.error("Failed to load job %s", job_id, exc_info=exc)
    return JobStatusResponse(
      job_id=job_id,
      status="failed",
      progress=100.0,
      created_at=_now_iso(),
      error=JobError(code=ErrorCode.INFRA_FAILURE.value, message=_STATUS_UNAVAILABLE_MSG),
    )

  if record is None:
    raise JobNotFoundError(_JOB_NOT_FOUND_MSG, context={"job_id": job_id})
  return _record_to_response(record, queue)
