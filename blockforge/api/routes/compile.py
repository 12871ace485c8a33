import logging

from fastapi import APIRouter, Depends, Request, status

from blockforge.api.deps import get_compilation_queue
from blockforge.api.models import EvmCompileRequest, JobCreateResponse, StellarCompileRequest
from blockforge.config import Settings, get_settings
from blockforge.jobs.queue import CompilationQueue
from blockforge.services import jobs as job_service
from blockforge.utils.ids import generate_request_id

router = APIRouter()
logger = logging.getLogger("blockforge.api.routes.compile")


def _request_id(request: Request) -> str:
  return getattr(request.state, "request_id", None) or generate_request_id()


@router.post("/evm", response_model=JobCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def compile_evm(  # noqa: B008
  payload: EvmCompileRequest,
  request: Request,
  settings: Settings = Depends(get_settings),  # noqa: B008
  queue: CompilationQueue = Depends(get_compilation_queue),  # noqa: B008
) -> JobCreateResponse:
  """Queue a Solidity compilation job."""
  return await job_service.submit_job(payload, kind="compile-evm", settings=settings, queue=queue, request_id=_request_id(request))


@router.post("/stellar", response_model=JobCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def compile_stellar(  # noqa: B008
  payload: StellarCompileRequest,
  request: Request,
  settings: Settings = Depends(get_settings),  # noqa: B008
  queue: CompilationQueue = Depends(get_compilation_queue),  # noqa: B008
) -> JobCreateResponse:
  """Queue a Soroban compilation job."""
  return await job_service.submit_job(payload, kind="compile-stellar", settings=settings, queue=queue, request_id=_request_id(request))
