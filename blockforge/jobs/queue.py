"""In-process compilation queue: an asyncio channel of job ids and a fixed worker pool."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import Protocol

from blockforge.core.errors import ErrorCode
from blockforge.jobs.models import JobRecord
from blockforge.jobs.progress import LiveJobState
from blockforge.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)

ORPHANED_MESSAGE = "Job was interrupted by a service restart. Please resubmit."
RECOVERY_BATCH_SIZE = 500
RETENTION_SWEEP_INTERVAL_SECONDS = 60.0


def _now_iso(offset_seconds: float = 0.0) -> str:
  return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time() + offset_seconds))


@dataclass(frozen=True)
class JobRetention:
  """How many finished jobs to keep per status, and for how long."""

  keep_completed: int = 100
  keep_failed: int = 500
  max_age_seconds: float | None = 86400.0


@dataclass(frozen=True)
class QueueMetrics:
  waiting: int
  active: int
  completed: int
  failed: int
  workers: int


class Processor(Protocol):
  async def process_job(self, job: JobRecord, *, live_state: LiveJobState | None = None) -> JobRecord | None:
    """Run a job that is already ``running`` to a terminal state."""


class CompilationQueue:
  """Decouple submission from compilation.

  ``submit`` persists the job and returns without waiting; workers claim
  jobs with a compare-and-set so a job id pushed twice is compiled once.
  """

  def __init__(self, *, jobs_repo: JobsRepository, processor: Processor, worker_count: int = 2, retention: JobRetention | None = None) -> None:
    if worker_count <= 0:
      raise ValueError("worker_count must be positive")
    self._jobs_repo = jobs_repo
    self._processor = processor
    self._worker_count = worker_count
    self._channel: asyncio.Queue[str] = asyncio.Queue()
    self._workers: list[asyncio.Task[None]] = []
    self._live: dict[str, LiveJobState] = {}
    self._retention = retention or JobRetention()
    self._last_prune: float | None = None

  @property
  def jobs_repo(self) -> JobsRepository:
    return self._jobs_repo

  @property
  def is_running(self) -> bool:
    return bool(self._workers)

  def live_state(self, job_id: str) -> LiveJobState | None:
    return self._live.get(job_id)

  async def submit(self, record: JobRecord) -> str:
    """Persist ``record`` as queued and hand its id to the worker pool."""
    if record.status != "queued":
      raise ValueError(f"Only queued jobs can be submitted, got {record.status}")
    await self._jobs_repo.create_job(record)
    self._live[record.job_id] = LiveJobState(status="queued", updated_at=record.updated_at)
    self._channel.put_nowait(record.job_id)
    logger.info("Queued job %s kind=%s contract=%s", record.job_id, record.job_kind, record.contract_name)
    return record.job_id

  async def recover(self) -> tuple[int, int]:
    """Fail jobs orphaned in ``running`` and re-push jobs still ``queued``."""
    orphaned = 0
    for job in await self._jobs_repo.find_by_status("running", limit=RECOVERY_BATCH_SIZE):
      error_json = {"code": ErrorCode.JOB_ORPHANED.value, "message": ORPHANED_MESSAGE}
      record = await self._jobs_repo.transition_job(job.job_id, from_status="running", to_status="failed", error_json=error_json, progress=100.0, phase="failed", completed_at=_now_iso())
      if record is not None:
        orphaned += 1

    requeued = 0
    for job in await self._jobs_repo.find_queued(limit=RECOVERY_BATCH_SIZE):
      self._channel.put_nowait(job.job_id)
      requeued += 1

    if orphaned or requeued:
      logger.warning("Recovered jobs after restart: %d orphaned, %d re-queued", orphaned, requeued)
    return orphaned, requeued

  async def start(self, *, recover: bool = True) -> None:
    if self._workers:
      return
    if recover:
      await self.recover()
      await self._maybe_prune()
    self._workers = [asyncio.create_task(self._worker_loop(index), name=f"compile-worker-{index}") for index in range(self._worker_count)]
    logger.info("Started %d compilation workers", self._worker_count)

  async def stop(self) -> None:
    """Cancel workers; in-flight toolchain processes are killed by cancellation."""
    workers, self._workers = self._workers, []
    for task in workers:
      task.cancel()
    for task in workers:
      with contextlib.suppress(asyncio.CancelledError):
        await task
    if workers:
      logger.info("Stopped %d compilation workers", len(workers))

  async def metrics(self) -> QueueMetrics:
    """Snapshot job counts: waiting is queued, active is running."""
    counts = await self._jobs_repo.count_by_status()
    return QueueMetrics(
      waiting=counts.get("queued", 0),
      active=counts.get("running", 0),
      completed=counts.get("completed", 0),
      failed=counts.get("failed", 0),
      workers=len(self._workers),
    )

  async def prune_finished(self) -> int:
    """Drop finished jobs outside the retention policy."""
    retention = self._retention
    completed_before = _now_iso(-retention.max_age_seconds) if retention.max_age_seconds else None
    removed = await self._jobs_repo.prune_jobs("completed", keep_latest=retention.keep_completed, completed_before=completed_before)
    removed += await self._jobs_repo.prune_jobs("failed", keep_latest=retention.keep_failed, completed_before=completed_before)
    self._last_prune = time.monotonic()
    if removed:
      logger.info("Pruned %d finished jobs", removed)
    return removed

  async def _maybe_prune(self) -> None:
    if self._last_prune is not None and time.monotonic() - self._last_prune < RETENTION_SWEEP_INTERVAL_SECONDS:
      return
    try:
      await self.prune_finished()
    except Exception:  # noqa: BLE001
      logger.warning("Finished-job retention sweep failed", exc_info=True)

  async def join(self) -> None:
    """Wait until every pushed job id has been handled."""
    await self._channel.join()

  async def _worker_loop(self, index: int) -> None:
    while True:
      job_id = await self._channel.get()
      try:
        await self._run_one(job_id)
        await self._maybe_prune()
      except Exception:  # noqa: BLE001
        logger.error("Worker %d crashed on job %s", index, job_id, exc_info=True)
      finally:
        self._live.pop(job_id, None)
        self._channel.task_done()

  async def _run_one(self, job_id: str) -> None:
    claimed = await self._jobs_repo.transition_job(job_id, from_status="queued", to_status="running", started_at=_now_iso(), phase="workspace")
    if claimed is None:
      logger.debug("Job %s already claimed or gone; skipping", job_id)
      return

    live_state = LiveJobState(status="running", phase=claimed.phase, updated_at=claimed.updated_at)
    self._live[job_id] = live_state
    await self._processor.process_job(claimed, live_state=live_state)
