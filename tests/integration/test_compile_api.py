from __future__ import annotations

import base64

import pytest
from httpx import AsyncClient

from blockforge.jobs.queue import CompilationQueue
from tests.conftest import EVM_BYTECODE, WASM_BYTES, FakeToolchain, running_queue

EVM_SOURCE = "pragma solidity ^0.8.20;\ncontract Counter {\n  uint256 public count;\n}\n"


@pytest.mark.anyio
async def test_evm_compile_round_trip(async_client: AsyncClient, compilation_queue: CompilationQueue) -> None:
  async with running_queue(compilation_queue):
    response = await async_client.post("/v1/compile/evm", json={"contractName": "Counter", "source": EVM_SOURCE}, headers={"x-request-id": "client-req-7"})
    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "pending"
    assert body["requestId"] == "client-req-7"
    assert response.headers["x-request-id"] == "client-req-7"

    await compilation_queue.join()

  status_response = await async_client.get(f"/v1/jobs/{body['jobId']}")
  assert status_response.status_code == 200
  status = status_response.json()
  assert status["status"] == "completed"
  assert status["progress"] == 100.0
  assert status["contractType"] == "evm"
  assert status["result"]["bytecode"] == EVM_BYTECODE
  assert status["error"] is None

  artifact_response = await async_client.get(f"/v1/artifacts/{status['result']['artifactId']}")
  assert artifact_response.status_code == 200
  artifact = artifact_response.json()
  assert artifact["kind"] == "evm"
  assert artifact["bytecode"] == EVM_BYTECODE
  assert "wasmBase64" not in artifact


@pytest.mark.anyio
async def test_stellar_compile_from_blocks(async_client: AsyncClient, compilation_queue: CompilationQueue, stellar_toolchain: FakeToolchain) -> None:
  payload = {"contractName": "acme-token", "blocks": [{"type": "erc20", "config": {"name": "Acme"}}, {"type": "mint"}], "network": "testnet"}
  async with running_queue(compilation_queue):
    response = await async_client.post("/v1/compile/stellar", json=payload)
    assert response.status_code == 202
    await compilation_queue.join()

  _, compile_input = stellar_toolchain.calls[0]
  assert compile_input.contract_name == "acme-token"
  assert "soroban_sdk" in compile_input.source

  status = (await async_client.get(f"/v1/jobs/{response.json()['jobId']}")).json()
  assert status["status"] == "completed"
  assert status["contractType"] == "stellar"
  assert status["result"]["wasmSize"] == len(WASM_BYTES)

  artifact = (await async_client.get(f"/v1/artifacts/{status['result']['wasmHash']}")).json()
  assert base64.b64decode(artifact["wasmBase64"]) == WASM_BYTES
  assert "bytecode" not in artifact


@pytest.mark.anyio
async def test_job_is_pending_before_workers_run(async_client: AsyncClient) -> None:
  response = await async_client.post("/v1/compile/evm", json={"contractName": "Counter", "source": EVM_SOURCE})

  status = (await async_client.get(f"/v1/jobs/{response.json()['jobId']}")).json()
  assert status["status"] == "pending"
  assert status["progress"] == 0.0
  assert status["result"] is None


@pytest.mark.anyio
async def test_compiler_failure_is_reported_on_the_job(async_client: AsyncClient, compilation_queue: CompilationQueue, evm_toolchain: FakeToolchain) -> None:
  from blockforge.core.errors import ToolchainError

  evm_toolchain.error = ToolchainError("Compilation failed", diagnostics="TypeError: Undeclared identifier.")
  async with running_queue(compilation_queue):
    response = await async_client.post("/v1/compile/evm", json={"contractName": "Counter", "source": EVM_SOURCE})
    await compilation_queue.join()

  status = (await async_client.get(f"/v1/jobs/{response.json()['jobId']}")).json()
  assert status["status"] == "failed"
  assert status["error"] == {"code": "COMPILATION_FAILED", "message": "Compilation failed", "diagnostics": "TypeError: Undeclared identifier."}
  assert status["result"] is None


@pytest.mark.anyio
@pytest.mark.parametrize(
  "payload",
  [
    {"contractName": "Counter"},
    {"contractName": "Counter", "source": EVM_SOURCE, "blocks": [{"type": "erc20"}]},
    {"contractName": "bad name!", "source": EVM_SOURCE},
    {"contractName": "Counter", "source": EVM_SOURCE, "unexpected": True},
  ],
)
async def test_malformed_submissions_are_rejected(async_client: AsyncClient, payload: dict) -> None:
  response = await async_client.post("/v1/compile/evm", json=payload)

  assert response.status_code == 422
  detail = response.json()["detail"]
  assert detail["code"] == "INVALID_INPUT"
  assert detail["message"] == "Request validation failed."


@pytest.mark.anyio
async def test_rejected_source_returns_validation_code(async_client: AsyncClient, jobs_repo) -> None:
  response = await async_client.post("/v1/compile/stellar", json={"contractName": "token", "source": "pub fn main() {}"})

  assert response.status_code == 422
  assert response.json()["detail"]["code"] == "MISSING_SDK_IMPORT"
  assert "requestId" in response.json()
  assert await jobs_repo.find_queued() == []


@pytest.mark.anyio
async def test_blocks_without_base_are_bad_requests(async_client: AsyncClient) -> None:
  response = await async_client.post("/v1/compile/evm", json={"contractName": "Counter", "blocks": [{"type": "burn"}]})

  assert response.status_code == 400
  assert response.json()["detail"]["code"] == "INVALID_INPUT"


@pytest.mark.anyio
async def test_unknown_job_and_artifact_are_not_found(async_client: AsyncClient) -> None:
  job_response = await async_client.get("/v1/jobs/does-not-exist")
  artifact_response = await async_client.get(f"/v1/artifacts/{'a' * 64}")

  assert job_response.status_code == 404
  assert job_response.json()["detail"] == {"code": "JOB_NOT_FOUND", "message": "Job not found."}
  assert artifact_response.status_code == 404
  assert artifact_response.json()["detail"]["code"] == "ARTIFACT_NOT_FOUND"


@pytest.mark.anyio
async def test_queue_metrics_track_submissions(async_client: AsyncClient, compilation_queue: CompilationQueue) -> None:
  await async_client.post("/v1/compile/evm", json={"contractName": "Counter", "source": EVM_SOURCE})

  pending = await async_client.get("/v1/jobs/metrics")
  assert pending.status_code == 200
  assert pending.json() == {"waiting": 1, "active": 0, "completed": 0, "failed": 0, "workers": 0}

  async with running_queue(compilation_queue):
    await compilation_queue.join()

  finished = await async_client.get("/v1/jobs/metrics")
  assert finished.json()["completed"] == 1
  assert finished.json()["waiting"] == 0
