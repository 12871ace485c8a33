"""Shared fixtures: in-memory repository, fake toolchains, and an ASGI client."""

from __future__ import annotations

import os

# Ensure required settings are available before importing the app.
os.environ.setdefault("BLOCKFORGE_ALLOWED_ORIGINS", "http://localhost")
os.environ.pop("BLOCKFORGE_PG_DSN", None)
os.environ.pop("DATABASE_URL", None)

from collections.abc import AsyncIterator, Callable  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402
from dataclasses import replace  # noqa: E402
from pathlib import Path  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from blockforge.api.deps import get_artifact_store, get_compilation_queue  # noqa: E402
from blockforge.compiler.toolchain import CompiledArtifact, CompileInput, ToolchainConfig, ToolchainInvoker, ToolchainRun  # noqa: E402
from blockforge.config import Settings, get_settings  # noqa: E402
from blockforge.jobs.queue import CompilationQueue  # noqa: E402
from blockforge.jobs.worker import JobProcessor  # noqa: E402
from blockforge.main import app  # noqa: E402
from blockforge.services.artifacts import ArtifactStore  # noqa: E402
from blockforge.storage.memory_jobs_repo import InMemoryJobsRepository  # noqa: E402

EVM_BYTECODE = "6080604052348015600f57600080fd5b50"
WASM_BYTES = b"\x00asm\x01\x00\x00\x00fake-module"


class FakeToolchain:
  """Stands in for solc/soroban; returns a canned artifact or raises."""

  def __init__(self, kind: str = "evm", *, error: BaseException | None = None, exit_code: int = 0, on_run: Callable[[Path, CompileInput], None] | None = None) -> None:
    self.kind = kind
    self.error = error
    self.exit_code = exit_code
    self.on_run = on_run
    self.calls: list[tuple[Path, CompileInput]] = []

  async def run(self, workspace: Path, compile_input: CompileInput) -> ToolchainRun:
    self.calls.append((workspace, compile_input))
    assert workspace.is_dir()
    if self.on_run is not None:
      self.on_run(workspace, compile_input)
    if self.error is not None:
      raise self.error
    if self.kind == "evm":
      abi = [{"type": "function", "name": "transfer", "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}], "outputs": [], "stateMutability": "nonpayable"}]
      artifact = CompiledArtifact(kind="evm", abi=abi, bytecode=EVM_BYTECODE, warnings=("Warning: unused variable",))
    else:
      artifact = CompiledArtifact(kind="stellar", abi={"functions": [{"name": "initialize"}], "types": []}, wasm_bytes=WASM_BYTES)
    return ToolchainRun(exit_code=self.exit_code, stdout="", stderr="", artifact=artifact)


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
  return replace(get_settings(), workspace_root=tmp_path / "workspaces", artifact_dir=tmp_path / "artifacts", worker_count=1)


@pytest.fixture
def jobs_repo() -> InMemoryJobsRepository:
  return InMemoryJobsRepository()


@pytest.fixture
def artifact_store(settings: Settings) -> ArtifactStore:
  return ArtifactStore(settings.artifact_dir)


@pytest.fixture
def evm_toolchain() -> FakeToolchain:
  return FakeToolchain("evm")


@pytest.fixture
def stellar_toolchain() -> FakeToolchain:
  return FakeToolchain("stellar")


@pytest.fixture
def invoker(evm_toolchain: FakeToolchain, stellar_toolchain: FakeToolchain) -> ToolchainInvoker:
  return ToolchainInvoker(ToolchainConfig(), toolchains={"compile-evm": evm_toolchain, "compile-stellar": stellar_toolchain})


@pytest.fixture
def processor(jobs_repo: InMemoryJobsRepository, invoker: ToolchainInvoker, artifact_store: ArtifactStore, settings: Settings) -> JobProcessor:
  return JobProcessor(jobs_repo=jobs_repo, invoker=invoker, artifact_store=artifact_store, settings=settings)


@asynccontextmanager
async def running_queue(queue: CompilationQueue) -> AsyncIterator[CompilationQueue]:
  """Run the worker pool for the duration of a test."""
  await queue.start()
  try:
    yield queue
  finally:
    await queue.stop()


@pytest.fixture
def compilation_queue(jobs_repo: InMemoryJobsRepository, processor: JobProcessor) -> CompilationQueue:
  return CompilationQueue(jobs_repo=jobs_repo, processor=processor, worker_count=1)


@pytest.fixture
async def async_client(compilation_queue: CompilationQueue, artifact_store: ArtifactStore, settings: Settings) -> AsyncIterator[AsyncClient]:
  app.dependency_overrides[get_compilation_queue] = lambda: compilation_queue
  app.dependency_overrides[get_artifact_store] = lambda: artifact_store
  app.dependency_overrides[get_settings] = lambda: settings
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
