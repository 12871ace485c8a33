"""Repository selection based on configuration."""

from __future__ import annotations

import logging
from functools import lru_cache

from blockforge.config import Settings
from blockforge.storage.jobs_repo import JobsRepository
from blockforge.storage.memory_jobs_repo import InMemoryJobsRepository

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _memory_jobs_repo() -> InMemoryJobsRepository:
  return InMemoryJobsRepository()


def _get_jobs_repo(settings: Settings) -> JobsRepository:
  """Return the Postgres repository when a DSN is configured, else the in-process one."""
  if settings.pg_dsn:
    from blockforge.storage.postgres_jobs_repo import PostgresJobsRepository

    return PostgresJobsRepository()

  logger.warning("BLOCKFORGE_PG_DSN not set; job records are kept in memory and lost on restart.")
  return _memory_jobs_repo()
