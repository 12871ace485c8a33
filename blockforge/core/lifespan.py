import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from blockforge.compiler.toolchain import ToolchainConfig, ToolchainInvoker
from blockforge.compiler.workspace import sweep_stale_workspaces
from blockforge.core.database import dispose_engine
from blockforge.core.logging import _initialize_logging
from blockforge.jobs.queue import CompilationQueue, JobRetention
from blockforge.jobs.worker import JobProcessor
from blockforge.services.artifacts import ArtifactStore
from blockforge.storage.factory import _get_jobs_repo


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Start the compilation worker pool and tear it down on shutdown."""
  from blockforge.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("blockforge.core.lifespan")

  _initialize_logging(settings)
  logger.info("Starting blockforge environment=%s pg_dsn=%s", settings.environment, _redact_dsn(settings.pg_dsn))

  sweep_stale_workspaces(settings.workspace_root)

  jobs_repo = _get_jobs_repo(settings)
  invoker = ToolchainInvoker(ToolchainConfig.from_settings(settings))
  artifact_store = ArtifactStore(settings.artifact_dir)
  processor = JobProcessor(jobs_repo=jobs_repo, invoker=invoker, artifact_store=artifact_store, settings=settings)
  retention = JobRetention(keep_completed=settings.job_keep_completed, keep_failed=settings.job_keep_failed, max_age_seconds=settings.job_retention_seconds)
  queue = CompilationQueue(jobs_repo=jobs_repo, processor=processor, worker_count=settings.worker_count, retention=retention)

  await queue.start()
  app.state.compilation_queue = queue
  app.state.artifact_store = artifact_store
  logger.info("Startup complete - %d workers, artifacts at %s", settings.worker_count, settings.artifact_dir)

  try:
    yield
  finally:
    await queue.stop()
    app.state.compilation_queue = None
    if settings.pg_dsn:
      await dispose_engine()
    logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
