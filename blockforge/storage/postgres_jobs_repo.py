"""Postgres-backed repository for compilation jobs using SQLAlchemy."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, or_, select

from blockforge.core.database import get_session_factory
from blockforge.jobs.models import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, JobRecord, JobStatus, ensure_transition
from blockforge.schema.jobs import CompilationJob
from blockforge.storage.jobs_repo import JobsRepository

MAX_TRACKED_LOGS = 100
_TRANSITION_FIELDS = {"started_at", "completed_at", "progress", "phase", "artifact_id", "result_json", "error_json", "logs"}


def _now_iso() -> str:
  return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class PostgresJobsRepository(JobsRepository):
  """Persist compilation jobs to Postgres using SQLAlchemy."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_job(self, record: JobRecord) -> None:
    async with self._session_factory() as session:
      job = CompilationJob(
        job_id=record.job_id,
        request_id=record.request_id,
        job_kind=record.job_kind,
        contract_type=record.contract_type,
        contract_name=record.contract_name,
        request_json=record.request,
        status=record.status,
        source_hash=record.source_hash,
        progress=record.progress,
        phase=record.phase,
        artifact_id=record.artifact_id,
        result_json=record.result_json,
        error_json=record.error_json,
        error_message=record.error_message,
        logs_json=list(record.logs)[-MAX_TRACKED_LOGS:],
        created_at=record.created_at,
        updated_at=record.updated_at,
        started_at=record.started_at,
        completed_at=record.completed_at,
      )
      session.add(job)
      await session.commit()

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(CompilationJob, job_id)
      if row is None:
        return None
      return self._model_to_record(row)

  async def update_job(self, job_id: str, *, progress: float | None = None, phase: str | None = None, logs: list[str] | None = None, updated_at: str | None = None) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(CompilationJob, job_id)
      if row is None:
        return None
      if progress is not None:
        row.progress = progress
      if phase is not None:
        row.phase = phase
      if logs is not None:
        row.logs_json = list(logs)[-MAX_TRACKED_LOGS:]
      row.updated_at = updated_at or _now_iso()
      await session.commit()
      await session.refresh(row)
      return self._model_to_record(row)

  async def transition_job(self, job_id: str, *, from_status: JobStatus, to_status: JobStatus, **fields: Any) -> JobRecord | None:
    ensure_transition(from_status, to_status)
    unknown = set(fields) - _TRANSITION_FIELDS
    if unknown:
      raise TypeError(f"Unsupported transition fields: {sorted(unknown)}")

    async with self._session_factory() as session:
      # Row lock so two workers cannot both claim the same queued job.
      stmt = select(CompilationJob).where(CompilationJob.job_id == job_id).with_for_update()
      result = await session.execute(stmt)
      row = result.scalar_one_or_none()
      if row is None or row.status != from_status:
        await session.rollback()
        return None

      row.status = to_status
      row.updated_at = _now_iso()
      for key, value in fields.items():
        if value is None:
          continue
        if key == "logs":
          row.logs_json = list(value)[-MAX_TRACKED_LOGS:]
        else:
          setattr(row, key, value)
      if fields.get("error_json"):
        row.error_message = fields["error_json"].get("message")

      await session.commit()
      await session.refresh(row)
      return self._model_to_record(row)

  async def find_queued(self, limit: int = 50) -> list[JobRecord]:
    return await self.find_by_status("queued", limit=limit)

  async def find_by_status(self, status: JobStatus, limit: int = 100) -> list[JobRecord]:
    async with self._session_factory() as session:
      stmt = select(CompilationJob).where(CompilationJob.status == status).order_by(CompilationJob.created_at.asc()).limit(limit)
      result = await session.execute(stmt)
      return [self._model_to_record(row) for row in result.scalars().all()]

  async def count_by_status(self) -> dict[str, int]:
    async with self._session_factory() as session:
      stmt = select(CompilationJob.status, func.count()).group_by(CompilationJob.status)
      result = await session.execute(stmt)
      counts = dict.fromkeys(ALLOWED_TRANSITIONS, 0)
      counts.update({status: int(count) for status, count in result.all()})
      return counts

  async def prune_jobs(self, status: JobStatus, *, keep_latest: int, completed_before: str | None = None) -> int:
    if status not in TERMINAL_STATUSES:
      raise ValueError(f"Only finished jobs can be pruned, got {status}")

    async with self._session_factory() as session:
      overflow = (
        select(CompilationJob.job_id)
        .where(CompilationJob.status == status)
        .order_by(CompilationJob.completed_at.desc().nulls_last(), CompilationJob.created_at.desc())
        .offset(keep_latest)
      )
      condition = CompilationJob.job_id.in_(overflow)
      if completed_before is not None:
        condition = or_(condition, CompilationJob.completed_at < completed_before)
      result = await session.execute(delete(CompilationJob).where(CompilationJob.status == status, condition))
      await session.commit()
      return int(result.rowcount or 0)

  def _model_to_record(self, row: CompilationJob) -> JobRecord:
    return JobRecord(
      job_id=row.job_id,
      request_id=row.request_id,
      job_kind=row.job_kind,  # type: ignore[arg-type]
      contract_name=row.contract_name,
      request=row.request_json,
      status=row.status,  # type: ignore[arg-type]
      source_hash=row.source_hash,
      created_at=row.created_at,
      updated_at=row.updated_at,
      started_at=row.started_at,
      completed_at=row.completed_at,
      progress=float(row.progress or 0.0),
      phase=row.phase,
      artifact_id=row.artifact_id,
      result_json=row.result_json,
      error_json=row.error_json,
      logs=list(row.logs_json or []),
    )
