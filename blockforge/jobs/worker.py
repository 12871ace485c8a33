"""Compilation job processor: one job, one workspace, one toolchain run."""

from __future__ import annotations

import logging
import time
from typing import Any

from blockforge.blocks.models import TargetLanguage
from blockforge.compiler.abi import validate_abi
from blockforge.compiler.toolchain import CompileInput, ToolchainInvoker, ToolchainRun
from blockforge.compiler.validator import validate_source
from blockforge.compiler.workspace import Workspace
from blockforge.config import Settings
from blockforge.core.errors import BlockForgeError, ErrorCode, InfraError, ToolchainError
from blockforge.jobs.models import JobKind, JobRecord
from blockforge.jobs.progress import JobProgressTracker, LiveJobState
from blockforge.services.artifacts import ArtifactStore
from blockforge.storage.jobs_repo import JobsRepository

GENERIC_INFRA_MESSAGE = "Internal error while compiling. Please retry later."

_LANGUAGE_BY_KIND: dict[str, TargetLanguage] = {"compile-evm": TargetLanguage.SOLIDITY, "compile-stellar": TargetLanguage.RUST_SOROBAN}


def _now_iso() -> str:
  return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def error_payload_for(exc: BlockForgeError) -> dict[str, Any]:
  """Build the persisted error for a failed job; only compiler errors carry diagnostics."""
  if isinstance(exc, InfraError):
    return {"code": exc.code.value, "message": GENERIC_INFRA_MESSAGE}
  payload: dict[str, Any] = {"code": exc.code.value, "message": exc.message}
  if isinstance(exc, ToolchainError) and exc.diagnostics:
    payload["diagnostics"] = exc.diagnostics
  return payload


def build_result(job_kind: JobKind, artifact_id: str, run: ToolchainRun) -> dict[str, Any]:
  artifact = run.artifact
  result: dict[str, Any] = {"artifactId": artifact_id, "kind": artifact.kind, "abi": artifact.abi, "warnings": list(artifact.warnings)}
  if job_kind == "compile-evm":
    result["bytecode"] = artifact.bytecode
  else:
    result["wasmHash"] = artifact_id
    result["wasmSize"] = len(artifact.wasm_bytes or b"")
  return result


class JobProcessor:
  """Coordinates execution of claimed compilation jobs."""

  def __init__(self, *, jobs_repo: JobsRepository, invoker: ToolchainInvoker, artifact_store: ArtifactStore, settings: Settings) -> None:
    self._jobs_repo = jobs_repo
    self._invoker = invoker
    self._artifact_store = artifact_store
    self._settings = settings
    self._logger = logging.getLogger(__name__)

  async def process_job(self, job: JobRecord, *, live_state: LiveJobState | None = None) -> JobRecord | None:
    """Compile a job the caller has already moved to ``running``.

    Always ends in ``completed`` or ``failed``; task cancellation propagates
    after the workspace and any child process are released.
    """
    tracker = JobProgressTracker(job_id=job.job_id, jobs_repo=self._jobs_repo, live_state=live_state, initial_logs=job.logs)
    try:
      compile_input = CompileInput.from_request(job.job_kind, job.request)
      with Workspace(self._settings.workspace_root) as workspace_path:
        await tracker.complete_step("workspace", message="Workspace allocated.")

        validate_source(compile_input.source, _LANGUAGE_BY_KIND[job.job_kind], max_bytes=self._settings.max_source_bytes).raise_for_error()
        await tracker.complete_step("source", message="Source validated.")

        await tracker.set_phase("toolchain", message=f"Running {job.contract_type} toolchain.")
        run = await self._invoker.run(workspace_path, compile_input)
        await tracker.complete_step("toolchain", message=f"Toolchain finished with {len(run.artifact.warnings)} warning(s).")

        for problem in validate_abi(run.artifact.kind, run.artifact.abi):
          self._logger.warning("ABI check job_id=%s: %s", job.job_id, problem)

        artifact_id = await self._artifact_store.put(run.artifact)
        await tracker.complete_step("artifact", message=f"Artifact {artifact_id} stored.")

      return await self._complete(job, tracker, artifact_id, run)
    except BlockForgeError as exc:
      if isinstance(exc, InfraError):
        self._logger.error("Infrastructure failure job_id=%s code=%s: %s", job.job_id, exc.code, exc.message, exc_info=True)
      else:
        self._logger.info("Job failed job_id=%s code=%s: %s", job.job_id, exc.code, exc.message)
      return await self._fail(job, tracker, error_payload_for(exc))
    except Exception:  # noqa: BLE001
      self._logger.error("Unexpected failure processing job %s", job.job_id, exc_info=True)
      return await self._fail(job, tracker, {"code": ErrorCode.INFRA_FAILURE.value, "message": GENERIC_INFRA_MESSAGE})

  async def _complete(self, job: JobRecord, tracker: JobProgressTracker, artifact_id: str, run: ToolchainRun) -> JobRecord | None:
    tracker.add_logs("Compilation completed.")
    record = await self._jobs_repo.transition_job(
      job.job_id,
      from_status="running",
      to_status="completed",
      artifact_id=artifact_id,
      result_json=build_result(job.job_kind, artifact_id, run),
      progress=100.0,
      phase="completed",
      logs=tracker.logs,
      completed_at=_now_iso(),
    )
    if record is None:
      self._logger.warning("Job %s left running state before completion was recorded", job.job_id)
    return record

  async def _fail(self, job: JobRecord, tracker: JobProgressTracker, error_json: dict[str, Any]) -> JobRecord | None:
    tracker.add_logs(f"Compilation failed: {error_json['message']}")
    record = await self._jobs_repo.transition_job(
      job.job_id,
      from_status="running",
      to_status="failed",
      error_json=error_json,
      progress=100.0,
      phase="failed",
      logs=tracker.logs,
      completed_at=_now_iso(),
    )
    if record is None:
      self._logger.warning("Job %s left running state before failure was recorded", job.job_id)
    return record
