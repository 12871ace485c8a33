"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
  """Stable error identifiers shared by the API and persisted job records."""

  INVALID_INPUT = "INVALID_INPUT"
  EMPTY_SOURCE = "EMPTY_SOURCE"
  SOURCE_TOO_LARGE = "SOURCE_TOO_LARGE"
  MISSING_SDK_IMPORT = "MISSING_SDK_IMPORT"
  MISSING_CONTRACT_MARKER = "MISSING_CONTRACT_MARKER"
  MISSING_CONTRACT_DECLARATION = "MISSING_CONTRACT_DECLARATION"
  CROSS_CHAIN_SOURCE = "CROSS_CHAIN_SOURCE"
  COMPILATION_FAILED = "COMPILATION_FAILED"
  COMPILATION_TIMEOUT = "COMPILATION_TIMEOUT"
  WORKSPACE_UNAVAILABLE = "WORKSPACE_UNAVAILABLE"
  WORKSPACE_NOT_READY = "WORKSPACE_NOT_READY"
  TOOLCHAIN_UNAVAILABLE = "TOOLCHAIN_UNAVAILABLE"
  INFRA_FAILURE = "INFRA_FAILURE"
  JOB_ORPHANED = "JOB_ORPHANED"
  JOB_NOT_FOUND = "JOB_NOT_FOUND"
  ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"


class BlockForgeError(Exception):
  """Base error class that carries a code and optional context."""

  default_code = ErrorCode.INFRA_FAILURE

  def __init__(self, message: str, *, code: ErrorCode | None = None, context: Mapping[str, object] | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.code = code or self.default_code
    self.context = dict(context or {})

  def to_dict(self) -> dict[str, object]:
    payload: dict[str, object] = {"code": self.code.value, "message": self.message}
    if self.context:
      payload["context"] = dict(self.context)
    return payload


class InvalidInputError(BlockForgeError):
  """Malformed submission: bad fields, illegal block lists, unknown targets."""

  default_code = ErrorCode.INVALID_INPUT


class ValidationError(BlockForgeError):
  """Source text rejected by static pre-checks before any toolchain runs."""

  default_code = ErrorCode.INVALID_INPUT


class ToolchainError(BlockForgeError):
  """The external compiler exited non-zero or produced unusable output."""

  default_code = ErrorCode.COMPILATION_FAILED

  def __init__(self, message: str, *, diagnostics: str = "", code: ErrorCode | None = None, context: Mapping[str, object] | None = None) -> None:
    super().__init__(message, code=code, context=context)
    self.diagnostics = diagnostics

  def to_dict(self) -> dict[str, object]:
    payload = super().to_dict()
    if self.diagnostics:
      payload["diagnostics"] = self.diagnostics
    return payload


class ToolchainTimeoutError(BlockForgeError):
  """The toolchain exceeded its wall-clock budget and was killed."""

  default_code = ErrorCode.COMPILATION_TIMEOUT


class ResourceError(BlockForgeError):
  """A workspace could not be allocated."""

  default_code = ErrorCode.WORKSPACE_UNAVAILABLE


class NotReadyError(BlockForgeError):
  """A workspace path was requested before the workspace was created."""

  default_code = ErrorCode.WORKSPACE_NOT_READY


class InfraError(BlockForgeError):
  """Queue, store or toolchain infrastructure failure; details stay server-side."""

  default_code = ErrorCode.INFRA_FAILURE


class JobNotFoundError(BlockForgeError):
  default_code = ErrorCode.JOB_NOT_FOUND


class ArtifactNotFoundError(BlockForgeError):
  default_code = ErrorCode.ARTIFACT_NOT_FOUND
