"""Storage interfaces for compilation jobs."""

from __future__ import annotations

from typing import Any, Protocol

from blockforge.jobs.models import JobRecord, JobStatus


class JobsRepository(Protocol):
  """Repository contract for job persistence."""

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def update_job(self, job_id: str, *, progress: float | None = None, phase: str | None = None, logs: list[str] | None = None, updated_at: str | None = None) -> JobRecord | None:
    """Apply progress updates that do not change the job status."""

  async def transition_job(self, job_id: str, *, from_status: JobStatus, to_status: JobStatus, **fields: Any) -> JobRecord | None:
    """Move a job between states atomically.

    Returns None when the job is missing or no longer in ``from_status``,
    which lets concurrent workers race for a claim safely.
    """

  async def find_queued(self, limit: int = 50) -> list[JobRecord]:
    """Return queued jobs, oldest first."""

  async def find_by_status(self, status: JobStatus, limit: int = 100) -> list[JobRecord]:
    """Return jobs in one status, oldest first."""

  async def count_by_status(self) -> dict[str, int]:
    """Return the number of jobs in every status, zero for empty ones."""

  async def prune_jobs(self, status: JobStatus, *, keep_latest: int, completed_before: str | None = None) -> int:
    """Delete finished jobs in ``status`` and return how many were removed.

    The newest ``keep_latest`` jobs survive unless they completed before
    ``completed_before``. Only terminal statuses may be pruned.
    """
