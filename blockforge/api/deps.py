"""Shared FastAPI dependencies for the compilation runtime."""

from __future__ import annotations

from fastapi import Request

from blockforge.core.errors import ErrorCode, InfraError
from blockforge.jobs.queue import CompilationQueue
from blockforge.services.artifacts import ArtifactStore


def get_compilation_queue(request: Request) -> CompilationQueue:
  queue = getattr(request.app.state, "compilation_queue", None)
  if queue is None:
    raise InfraError("Compilation queue is not running", code=ErrorCode.INFRA_FAILURE)
  return queue


def get_artifact_store(request: Request) -> ArtifactStore:
  store = getattr(request.app.state, "artifact_store", None)
  if store is None:
    raise InfraError("Artifact store is not configured", code=ErrorCode.INFRA_FAILURE)
  return store
