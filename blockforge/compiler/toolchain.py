"""Toolchain invocation contract shared by the EVM and Stellar compilers."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Protocol

from blockforge.config import Settings
from blockforge.core.errors import ErrorCode, InfraError, ToolchainError
from blockforge.jobs.models import JobKind

logger = logging.getLogger(__name__)

ArtifactKind = Literal["evm", "stellar"]


@dataclass(frozen=True)
class ToolchainConfig:
  """Binaries and limits injected into every toolchain."""

  solc_bin: str = "solc"
  soroban_bin: str = "soroban"
  soroban_sdk_version: str = "21.0.0"
  wasm_target: str = "wasm32-unknown-unknown"
  timeout_seconds: float = 60.0
  inspect_timeout_seconds: float = 15.0
  default_optimizer_runs: int = 200

  @classmethod
  def from_settings(cls, settings: Settings) -> ToolchainConfig:
    return cls(
      solc_bin=settings.solc_bin,
      soroban_bin=settings.soroban_bin,
      soroban_sdk_version=settings.soroban_sdk_version,
      wasm_target=settings.wasm_target,
      timeout_seconds=settings.compile_timeout_seconds,
      inspect_timeout_seconds=settings.inspect_timeout_seconds,
      default_optimizer_runs=settings.default_optimizer_runs,
    )


@dataclass(frozen=True)
class CompileInput:
  """The compile request a worker hands to a toolchain."""

  job_kind: JobKind
  source: str
  contract_name: str
  entry_contract: str
  network: str | None = None
  optimizer_runs: int | None = None

  @classmethod
  def from_request(cls, job_kind: JobKind, request: Mapping[str, Any]) -> CompileInput:
    contract_name = str(request["contract_name"])
    return cls(
      job_kind=job_kind,
      source=str(request["source"]),
      contract_name=contract_name,
      entry_contract=str(request.get("entry_contract") or contract_name),
      network=request.get("network"),
      optimizer_runs=request.get("optimizer_runs"),
    )

  def to_request(self) -> dict[str, Any]:
    return {"source": self.source, "contract_name": self.contract_name, "entry_contract": self.entry_contract, "network": self.network, "optimizer_runs": self.optimizer_runs}


@dataclass(frozen=True)
class CompiledArtifact:
  kind: ArtifactKind
  abi: Any
  bytecode: str | None = None
  wasm_bytes: bytes | None = None
  warnings: tuple[str, ...] = ()

  def payload_bytes(self) -> bytes:
    """The bytes the artifact id is derived from."""
    if self.kind == "evm":
      try:
        return bytes.fromhex((self.bytecode or "").removeprefix("0x"))
      except ValueError as exc:
        raise ToolchainError("Compiled bytecode is not deployable hex", diagnostics=(self.bytecode or "")[:200]) from exc
    return self.wasm_bytes or b""


@dataclass(frozen=True)
class ToolchainRun:
  exit_code: int
  stdout: str
  stderr: str
  artifact: CompiledArtifact
  artifact_paths: tuple[Path, ...] = field(default_factory=tuple)


class Toolchain(Protocol):
  """Compiler adapter for one job kind."""

  async def run(self, workspace: Path, compile_input: CompileInput) -> ToolchainRun:
    """Compile ``compile_input`` inside ``workspace``."""


def resolve_binary(binary: str) -> str:
  """Resolve a configured toolchain binary to an executable path."""
  resolved = shutil.which(binary)
  if resolved is None:
    raise InfraError(f"Toolchain binary unavailable: {binary}", code=ErrorCode.TOOLCHAIN_UNAVAILABLE, context={"binary": binary})
  return resolved


class ToolchainInvoker:
  """Registry mapping job kinds to toolchains."""

  def __init__(self, config: ToolchainConfig, toolchains: Mapping[JobKind, Toolchain] | None = None) -> None:
    self._config = config
    self._toolchains = dict(toolchains) if toolchains is not None else self._build_default_toolchains()

  def _build_default_toolchains(self) -> dict[JobKind, Toolchain]:
    from blockforge.compiler.evm import SolcToolchain
    from blockforge.compiler.stellar import SorobanToolchain

    return {"compile-evm": SolcToolchain(self._config), "compile-stellar": SorobanToolchain(self._config)}

  @property
  def config(self) -> ToolchainConfig:
    return self._config

  def resolve(self, job_kind: str) -> Toolchain:
    toolchain = self._toolchains.get(job_kind)  # type: ignore[call-overload]
    if toolchain is None:
      raise ValueError(f"Unsupported job kind: {job_kind}")
    return toolchain

  async def run(self, workspace: Path, compile_input: CompileInput) -> ToolchainRun:
    toolchain = self.resolve(compile_input.job_kind)
    result = await toolchain.run(workspace, compile_input)
    if result.exit_code != 0:
      raise ToolchainError(f"Toolchain exited with code {result.exit_code}", diagnostics=result.stderr)
    return result
