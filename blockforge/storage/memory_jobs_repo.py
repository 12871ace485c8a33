"""In-process job repository used when no database is configured."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from blockforge.jobs.models import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, JobRecord, JobStatus, ensure_transition
from blockforge.storage.jobs_repo import JobsRepository

MAX_TRACKED_LOGS = 100
_TRANSITION_FIELDS = {"started_at", "completed_at", "progress", "phase", "artifact_id", "result_json", "error_json", "logs"}


def _now_iso() -> str:
  return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class InMemoryJobsRepository(JobsRepository):
  """Keep job records in a dict guarded by an asyncio lock."""

  def __init__(self) -> None:
    self._jobs: dict[str, JobRecord] = {}
    self._lock = asyncio.Lock()

  async def create_job(self, record: JobRecord) -> None:
    async with self._lock:
      if record.job_id in self._jobs:
        raise ValueError(f"Job {record.job_id} already exists")
      self._jobs[record.job_id] = replace(record, logs=list(record.logs))

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._lock:
      record = self._jobs.get(job_id)
      return replace(record, logs=list(record.logs)) if record else None

  async def update_job(self, job_id: str, *, progress: float | None = None, phase: str | None = None, logs: list[str] | None = None, updated_at: str | None = None) -> JobRecord | None:
    async with self._lock:
      record = self._jobs.get(job_id)
      if record is None:
        return None
      changes: dict[str, Any] = {"updated_at": updated_at or _now_iso()}
      if progress is not None:
        changes["progress"] = progress
      if phase is not None:
        changes["phase"] = phase
      if logs is not None:
        changes["logs"] = list(logs)[-MAX_TRACKED_LOGS:]
      updated = replace(record, **changes)
      self._jobs[job_id] = updated
      return replace(updated, logs=list(updated.logs))

  async def transition_job(self, job_id: str, *, from_status: JobStatus, to_status: JobStatus, **fields: Any) -> JobRecord | None:
    ensure_transition(from_status, to_status)
    unknown = set(fields) - _TRANSITION_FIELDS
    if unknown:
      raise TypeError(f"Unsupported transition fields: {sorted(unknown)}")

    async with self._lock:
      record = self._jobs.get(job_id)
      if record is None or record.status != from_status:
        return None
      changes = {key: value for key, value in fields.items() if value is not None}
      if "logs" in changes:
        changes["logs"] = list(changes["logs"])[-MAX_TRACKED_LOGS:]
      updated = replace(record, status=to_status, updated_at=_now_iso(), **changes)
      self._jobs[job_id] = updated
      return replace(updated, logs=list(updated.logs))

  async def find_queued(self, limit: int = 50) -> list[JobRecord]:
    return await self.find_by_status("queued", limit=limit)

  async def find_by_status(self, status: JobStatus, limit: int = 100) -> list[JobRecord]:
    async with self._lock:
      matches = sorted((record for record in self._jobs.values() if record.status == status), key=lambda record: record.created_at)
      return [replace(record, logs=list(record.logs)) for record in matches[:limit]]

  async def count_by_status(self) -> dict[str, int]:
    counts = dict.fromkeys(ALLOWED_TRANSITIONS, 0)
    async with self._lock:
      for record in self._jobs.values():
        counts[record.status] = counts.get(record.status, 0) + 1
    return counts

  async def prune_jobs(self, status: JobStatus, *, keep_latest: int, completed_before: str | None = None) -> int:
    if status not in TERMINAL_STATUSES:
      raise ValueError(f"Only finished jobs can be pruned, got {status}")

    async with self._lock:
      # Newest first; completed_at is a fixed-width UTC string so it sorts lexically.
      matches = sorted(
        (record for record in self._jobs.values() if record.status == status),
        key=lambda record: (record.completed_at or record.updated_at, record.created_at),
        reverse=True,
      )
      doomed = [
        record.job_id
        for index, record in enumerate(matches)
        if index >= keep_latest or (completed_before is not None and (record.completed_at or record.updated_at) < completed_before)
      ]
      for job_id in doomed:
        del self._jobs[job_id]
    return len(doomed)
