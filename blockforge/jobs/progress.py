"""Job progress tracking utilities."""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass

from blockforge.jobs.models import JobRecord, JobStatus
from blockforge.storage.jobs_repo import JobsRepository

MAX_TRACKED_LOGS = 100

# Each finished phase advances progress by an equal share.
COMPILE_PHASES: tuple[str, ...] = ("workspace", "source", "toolchain", "artifact")


def _now_iso() -> str:
  return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


@dataclass
class LiveJobState:
  """In-process view of a job that a worker is holding."""

  status: JobStatus
  progress: float = 0.0
  phase: str | None = None
  updated_at: str | None = None


class JobProgressTracker:
  """Track job progress, phases, and log updates."""

  def __init__(self, *, job_id: str, jobs_repo: JobsRepository, live_state: LiveJobState | None = None, phases: Iterable[str] = COMPILE_PHASES, initial_logs: Iterable[str] | None = None) -> None:
    self._job_id = job_id
    self._jobs_repo = jobs_repo
    self._live_state = live_state
    self._phases = tuple(phases)
    self._total_steps = max(len(self._phases), 1)
    self._completed_steps = 0
    self._phase: str | None = None
    self._logs: list[str] = list(initial_logs or [])[-MAX_TRACKED_LOGS:]

  def add_logs(self, *messages: str) -> None:
    """Append log lines while preserving the rolling window."""

    self._logs.extend(messages)
    if len(self._logs) > MAX_TRACKED_LOGS:
      self._logs = self._logs[-MAX_TRACKED_LOGS:]

  def progress_percent(self) -> float:
    return min(round((self._completed_steps / self._total_steps) * 100, 2), 100.0)

  async def _update_job(self) -> JobRecord | None:
    timestamp = _now_iso()
    if self._live_state is not None:
      self._live_state.progress = self.progress_percent()
      self._live_state.phase = self._phase
      self._live_state.updated_at = timestamp
    return await self._jobs_repo.update_job(self._job_id, progress=self.progress_percent(), phase=self._phase, logs=self._logs, updated_at=timestamp)

  async def set_phase(self, phase: str, *, message: str | None = None) -> JobRecord | None:
    """Update the phase without advancing progress."""

    if message:
      self.add_logs(message)
    self._phase = phase
    return await self._update_job()

  async def complete_step(self, phase: str, *, message: str | None = None) -> JobRecord | None:
    """Mark ``phase`` as finished and advance progress."""

    if message:
      self.add_logs(message)
    self._phase = phase
    self._completed_steps = min(self._completed_steps + 1, self._total_steps)
    return await self._update_job()

  @property
  def phase(self) -> str | None:
    return self._phase

  @property
  def logs(self) -> list[str]:
    """Return a copy of the tracked logs."""

    return list(self._logs)
