"""Soroban compilation through ``soroban contract build``."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from blockforge.compiler.process import run_process
from blockforge.compiler.toolchain import CompiledArtifact, CompileInput, ToolchainConfig, ToolchainRun, resolve_binary
from blockforge.core.errors import BlockForgeError, ToolchainError

logger = logging.getLogger(__name__)

EMPTY_INTERFACE: dict[str, list[Any]] = {"functions": [], "types": []}

_CARGO_MANIFEST = """\
[package]
name = "{package_name}"
version = "0.1.0"
edition = "2021"
publish = false

[lib]
name = "{lib_name}"
crate-type = ["cdylib"]

[dependencies]
soroban-sdk = "{sdk_version}"

[dev-dependencies]
soroban-sdk = {{ version = "{sdk_version}", features = ["testutils"] }}

[profile.release]
opt-level = "z"
overflow-checks = true
debug = 0
strip = "symbols"
debug-assertions = false
panic = "abort"
codegen-units = 1
lto = true
"""


def lib_name_for(contract_name: str) -> str:
  """Crate library name; hyphens are not valid in Rust identifiers."""
  return contract_name.replace("-", "_")


def render_cargo_manifest(contract_name: str, *, sdk_version: str) -> str:
  return _CARGO_MANIFEST.format(package_name=contract_name, lib_name=lib_name_for(contract_name), sdk_version=sdk_version)


def wasm_path_for(workspace: Path, contract_name: str, *, wasm_target: str) -> Path:
  return workspace / "target" / wasm_target / "release" / f"{lib_name_for(contract_name)}.wasm"


def extract_warnings(*streams: str) -> tuple[str, ...]:
  return tuple(line.strip() for stream in streams for line in stream.splitlines() if "warning:" in line)


def _normalize_interface(parsed: Any) -> dict[str, Any]:
  if isinstance(parsed, dict):
    return {"functions": list(parsed.get("functions") or []), "types": list(parsed.get("types") or [])}
  if isinstance(parsed, list):
    return {"functions": parsed, "types": []}
  return dict(EMPTY_INTERFACE)


class SorobanToolchain:
  """Scaffold a cargo crate in the workspace and build it to WASM."""

  def __init__(self, config: ToolchainConfig) -> None:
    self._config = config

  async def run(self, workspace: Path, compile_input: CompileInput) -> ToolchainRun:
    binary = resolve_binary(self._config.soroban_bin)
    contract_name = compile_input.contract_name

    src_dir = workspace / "src"
    src_dir.mkdir(exist_ok=True)
    (workspace / "Cargo.toml").write_text(render_cargo_manifest(contract_name, sdk_version=self._config.soroban_sdk_version), encoding="utf-8")
    (src_dir / "lib.rs").write_text(compile_input.source, encoding="utf-8")

    env = {**os.environ, "CARGO_TARGET_DIR": str(workspace / "target")}
    result = await run_process([binary, "contract", "build"], cwd=workspace, timeout_seconds=self._config.timeout_seconds, env=env)
    if result.exit_code != 0:
      raise ToolchainError(f"soroban contract build exited with code {result.exit_code}", diagnostics=result.stderr or result.stdout)

    wasm_path = wasm_path_for(workspace, contract_name, wasm_target=self._config.wasm_target)
    if not wasm_path.is_file():
      raise ToolchainError("Build produced no WASM binary", diagnostics=result.stderr, context={"expected_path": str(wasm_path.relative_to(workspace))})

    wasm_bytes = wasm_path.read_bytes()
    interface = await self._inspect(binary, workspace, wasm_path, env)
    artifact = CompiledArtifact(kind="stellar", abi=interface, wasm_bytes=wasm_bytes, warnings=extract_warnings(result.stdout, result.stderr))

    logger.info("soroban built %s (%d bytes, %d warnings, %.2fs)", contract_name, len(wasm_bytes), len(artifact.warnings), result.duration_seconds)
    return ToolchainRun(exit_code=result.exit_code, stdout=result.stdout, stderr=result.stderr, artifact=artifact, artifact_paths=(wasm_path,))

  async def _inspect(self, binary: str, workspace: Path, wasm_path: Path, env: dict[str, str]) -> dict[str, Any]:
    """Read the contract interface from the built WASM; an empty interface on failure."""
    argv = [binary, "contract", "inspect", "--wasm", str(wasm_path), "--output", "json"]
    try:
      result = await run_process(argv, cwd=workspace, timeout_seconds=self._config.inspect_timeout_seconds, env=env)
    except BlockForgeError as exc:
      logger.warning("Contract interface inspection failed: %s", exc.message)
      return dict(EMPTY_INTERFACE)

    if result.exit_code != 0:
      logger.warning("Contract interface inspection exited with code %s: %s", result.exit_code, result.stderr.strip()[:500])
      return dict(EMPTY_INTERFACE)

    try:
      return _normalize_interface(json.loads(result.stdout))
    except json.JSONDecodeError:
      logger.warning("Contract interface inspection returned non-JSON output")
      return dict(EMPTY_INTERFACE)
