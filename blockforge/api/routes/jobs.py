from fastapi import APIRouter, Depends

from blockforge.api.deps import get_compilation_queue
from blockforge.api.models import JobStatusResponse, QueueMetricsResponse
from blockforge.jobs.queue import CompilationQueue
from blockforge.services import jobs as job_service

router = APIRouter()


@router.get("/metrics", response_model=QueueMetricsResponse)
async def get_queue_metrics(queue: CompilationQueue = Depends(get_compilation_queue)) -> QueueMetricsResponse:  # noqa: B008
  metrics = await queue.metrics()
  return QueueMetricsResponse(waiting=metrics.waiting, active=metrics.active, completed=metrics.completed, failed=metrics.failed, workers=metrics.workers)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, queue: CompilationQueue = Depends(get_compilation_queue)) -> JobStatusResponse:  # noqa: B008
  """Fetch the status and result of a compilation job."""
  return await job_service.get_job_status(job_id, jobs_repo=queue.jobs_repo, queue=queue)
