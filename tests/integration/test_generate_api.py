from __future__ import annotations

from fastapi.testclient import TestClient

from blockforge.codegen.generator import EMPTY_PLACEHOLDER, NO_BASE_PLACEHOLDER
from blockforge.main import app

client = TestClient(app)


def test_health_reports_version() -> None:
  response = client.get("/health")

  assert response.status_code == 200
  assert response.json() == {"status": "ok", "version": "0.1.0"}
  assert response.headers["x-content-type-options"] == "nosniff"
  assert response.headers["x-request-id"]


def test_invalid_request_id_header_is_replaced() -> None:
  response = client.get("/health", headers={"x-request-id": "x" * 200})

  assert response.headers["x-request-id"] != "x" * 200


def test_generate_solidity_with_abi_preview() -> None:
  blocks = [{"id": "b1", "type": "erc20", "config": {"name": "Acme", "symbol": "ACM"}}, {"id": "b2", "type": "mint"}]

  response = client.post("/v1/generate", json={"blocks": blocks, "target": "solidity"})

  assert response.status_code == 200
  body = response.json()
  assert body["targetLanguage"] == "solidity"
  assert body["contractName"] == "Acme"
  assert "contract Acme" in body["text"]
  names = {entry.get("name") for entry in body["abiPreview"]}
  assert "mint" in names


def test_generate_rust_has_no_abi_preview() -> None:
  response = client.post("/v1/generate", json={"blocks": [{"type": "nft"}], "target": "rust-soroban"})

  body = response.json()
  assert body["targetLanguage"] == "rust-soroban"
  assert "soroban_sdk" in body["text"]
  assert body["abiPreview"] is None


def test_generate_placeholders() -> None:
  empty = client.post("/v1/generate", json={"blocks": []}).json()
  no_base = client.post("/v1/generate", json={"blocks": [{"type": "burn"}]}).json()

  assert empty["text"] == EMPTY_PLACEHOLDER
  assert empty["contractName"] is None
  assert no_base["text"] == NO_BASE_PLACEHOLDER
  assert no_base["abiPreview"] is None


def test_generate_rejects_unknown_block_type() -> None:
  response = client.post("/v1/generate", json={"blocks": [{"type": "teleport"}]})

  assert response.status_code == 400
  assert response.json()["detail"]["code"] == "INVALID_INPUT"


def test_validate_reports_rejection_code() -> None:
  response = client.post("/v1/validate", json={"source": "contract Token {}", "target": "rust-soroban"})

  assert response.status_code == 200
  assert response.json() == {"valid": False, "error": "Source contains Solidity markers but a Stellar contract was requested.", "code": "CROSS_CHAIN_SOURCE"}


def test_validate_accepts_solidity() -> None:
  response = client.post("/v1/validate", json={"source": "pragma solidity ^0.8.0;\ncontract Token {}"})

  assert response.json() == {"valid": True, "error": None, "code": None}


def test_compile_without_running_queue_is_unavailable() -> None:
  response = client.post("/v1/compile/evm", json={"contractName": "Counter", "source": "contract Counter {}"})

  assert response.status_code == 503
  assert response.json()["detail"] == {"code": "INFRA_FAILURE", "message": "Service temporarily unavailable. Please retry later."}
