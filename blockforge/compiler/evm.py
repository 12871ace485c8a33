"""Solidity compilation through ``solc --standard-json``."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from blockforge.compiler.process import run_process
from blockforge.compiler.toolchain import CompiledArtifact, CompileInput, ToolchainConfig, ToolchainRun, resolve_binary
from blockforge.core.errors import ToolchainError

logger = logging.getLogger(__name__)

SOURCE_FILENAME = "contract.sol"
INPUT_FILENAME = "input.json"
OUTPUT_DIRNAME = "out"
MAX_DIAGNOSTIC_CHARS = 8000

# solc leaves "__$<34 hex>$__" where an external library address must be linked.
_LINK_PLACEHOLDER = re.compile(r"__\$[0-9a-fA-F]{34}\$__")
_HEX_BYTECODE = re.compile(r"^(0x)?([0-9a-fA-F]{2})+$")


def build_standard_input(source: str, *, optimizer_runs: int) -> dict[str, Any]:
  """Build the solc standard-JSON input for a single source file."""
  return {
    "language": "Solidity",
    "sources": {SOURCE_FILENAME: {"content": source}},
    "settings": {
      "optimizer": {"enabled": True, "runs": optimizer_runs},
      "outputSelection": {"*": {"*": ["abi", "evm.bytecode"]}},
    },
  }


def _link_placeholders(bytecode: str) -> list[str]:
  return sorted(set(_LINK_PLACEHOLDER.findall(bytecode)))


def _unlinked_libraries(bytecode_output: dict[str, Any]) -> list[str]:
  """Library names solc left unlinked, from ``linkReferences`` when present."""
  names: list[str] = []
  link_references = bytecode_output.get("linkReferences")
  if isinstance(link_references, dict):
    for source_name, libraries in link_references.items():
      if isinstance(libraries, dict):
        names.extend(f"{source_name}:{library}" for library in libraries)
  return sorted(names)


def _message_text(entry: dict[str, Any]) -> str:
  return str(entry.get("formattedMessage") or entry.get("message") or "")


def parse_standard_output(raw: str, contract_name: str) -> CompiledArtifact:
  """Extract ABI, bytecode and warnings for ``contract_name`` from solc output."""
  try:
    output = json.loads(raw)
  except json.JSONDecodeError as exc:
    raise ToolchainError("Unparsable compiler output", diagnostics=raw[:MAX_DIAGNOSTIC_CHARS]) from exc

  if not isinstance(output, dict):
    raise ToolchainError("Unparsable compiler output", diagnostics=raw[:MAX_DIAGNOSTIC_CHARS])

  messages = output.get("errors") or []
  if not isinstance(messages, list) or not all(isinstance(entry, dict) for entry in messages):
    raise ToolchainError("Unparsable compiler output", diagnostics=raw[:MAX_DIAGNOSTIC_CHARS])

  errors = [entry for entry in messages if entry.get("severity") == "error"]
  if errors:
    raise ToolchainError("Compilation failed", diagnostics="\n".join(_message_text(entry) for entry in errors))

  warnings = tuple(_message_text(entry) for entry in messages if entry.get("severity") == "warning")

  contracts = (output.get("contracts") or {}).get(SOURCE_FILENAME) or {}
  contract = contracts.get(contract_name)
  if contract is None:
    available = ", ".join(sorted(contracts)) or "none"
    raise ToolchainError(f"Contract {contract_name} not found in compiled output", diagnostics=f"Available contracts: {available}")

  bytecode_output = (contract.get("evm") or {}).get("bytecode") or {}
  bytecode = str(bytecode_output.get("object") or "")
  if not bytecode:
    raise ToolchainError(f"Contract {contract_name} produced no bytecode", diagnostics="Abstract contracts and interfaces cannot be deployed.")

  placeholders = _link_placeholders(bytecode)
  if placeholders:
    libraries = _unlinked_libraries(bytecode_output) or placeholders
    raise ToolchainError(f"Contract {contract_name} needs external libraries linked before deployment", diagnostics="Unlinked libraries: " + ", ".join(libraries))

  if not _HEX_BYTECODE.match(bytecode):
    raise ToolchainError(f"Contract {contract_name} produced malformed bytecode", diagnostics=bytecode[:MAX_DIAGNOSTIC_CHARS])

  return CompiledArtifact(kind="evm", abi=contract.get("abi") or [], bytecode=bytecode, warnings=warnings)


class SolcToolchain:
  """Compile one Solidity file with solc."""

  def __init__(self, config: ToolchainConfig) -> None:
    self._config = config

  async def run(self, workspace: Path, compile_input: CompileInput) -> ToolchainRun:
    binary = resolve_binary(self._config.solc_bin)
    runs = compile_input.optimizer_runs if compile_input.optimizer_runs is not None else self._config.default_optimizer_runs

    (workspace / SOURCE_FILENAME).write_text(compile_input.source, encoding="utf-8")
    standard_input = build_standard_input(compile_input.source, optimizer_runs=runs)
    encoded_input = json.dumps(standard_input)
    (workspace / INPUT_FILENAME).write_text(encoded_input, encoding="utf-8")

    result = await run_process([binary, "--standard-json"], cwd=workspace, timeout_seconds=self._config.timeout_seconds, stdin=encoded_input.encode("utf-8"))
    if result.exit_code != 0:
      raise ToolchainError(f"solc exited with code {result.exit_code}", diagnostics=result.stderr or result.stdout[:MAX_DIAGNOSTIC_CHARS])

    artifact = parse_standard_output(result.stdout, compile_input.entry_contract)

    out_dir = workspace / OUTPUT_DIRNAME
    out_dir.mkdir(exist_ok=True)
    abi_path = out_dir / f"{compile_input.entry_contract}.abi.json"
    bin_path = out_dir / f"{compile_input.entry_contract}.bin"
    abi_path.write_text(json.dumps(artifact.abi), encoding="utf-8")
    bin_path.write_text(artifact.bytecode or "", encoding="utf-8")

    logger.info("solc compiled %s (%d warnings, %.2fs)", compile_input.entry_contract, len(artifact.warnings), result.duration_seconds)
    return ToolchainRun(exit_code=result.exit_code, stdout=result.stdout, stderr=result.stderr, artifact=artifact, artifact_paths=(abi_path, bin_path))
