"""Static pre-checks that run before any toolchain is invoked."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from blockforge.blocks.models import TargetLanguage
from blockforge.core.errors import ErrorCode, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_SOURCE_BYTES = 1024 * 1024

SOROBAN_SDK_TOKEN = "soroban_sdk"
SOROBAN_CONTRACT_MARKERS = ("#[contract]", "#[contractimpl]")

_SOLIDITY_MARKERS = (
  re.compile(r"\bpragma\s+solidity\b"),
  re.compile(r"\bmsg\.sender\b"),
  re.compile(r"^\s*contract\s+\w+(\s+is\s+[\w\s,]+)?\s*\{", re.MULTILINE),
)
_SOROBAN_MARKERS = (
  re.compile(r"\bsoroban_sdk\b"),
  re.compile(r"#\[contractimpl\]"),
  re.compile(r"#!\[no_std\]"),
)
_SOLIDITY_DECLARATION = re.compile(r"\b(contract|library|interface)\s+[A-Za-z_$][\w$]*")


@dataclass(frozen=True)
class ValidationResult:
  valid: bool
  error: str | None = None
  code: ErrorCode | None = None

  def raise_for_error(self) -> None:
    """Raise a ValidationError when the source was rejected."""
    if not self.valid:
      raise ValidationError(self.error or "invalid source", code=self.code)


def _reject(code: ErrorCode, message: str) -> ValidationResult:
  return ValidationResult(valid=False, error=message, code=code)


def _has_any(source: str, patterns: tuple[re.Pattern[str], ...]) -> bool:
  return any(pattern.search(source) for pattern in patterns)


def validate_source(source: str, language: TargetLanguage | str, *, max_bytes: int = DEFAULT_MAX_SOURCE_BYTES) -> ValidationResult:
  """Check that ``source`` is worth handing to the toolchain for ``language``.

  These are substring heuristics, not a parser: a Rust source that merely
  mentions the SDK in a comment passes the import check.
  """
  language = TargetLanguage(language)

  if not source or not source.strip():
    return _reject(ErrorCode.EMPTY_SOURCE, "empty source")

  size = len(source.encode("utf-8"))
  if size > max_bytes:
    return _reject(ErrorCode.SOURCE_TOO_LARGE, f"source exceeds maximum size of {max_bytes} bytes ({size} bytes)")

  if language is TargetLanguage.RUST_SOROBAN:
    if _has_any(source, _SOLIDITY_MARKERS):
      return _reject(ErrorCode.CROSS_CHAIN_SOURCE, "Source contains Solidity markers but a Stellar contract was requested.")

    if SOROBAN_SDK_TOKEN not in source:
      return _reject(ErrorCode.MISSING_SDK_IMPORT, "Missing soroban_sdk import. Soroban contracts must use soroban_sdk.")

    if not any(marker in source for marker in SOROBAN_CONTRACT_MARKERS):
      return _reject(ErrorCode.MISSING_CONTRACT_MARKER, "Missing #[contract] or #[contractimpl] attribute. Soroban contracts must use these macros.")

    return ValidationResult(valid=True)

  if _has_any(source, _SOROBAN_MARKERS):
    return _reject(ErrorCode.CROSS_CHAIN_SOURCE, "Source contains Soroban markers but an EVM contract was requested.")

  if not _SOLIDITY_DECLARATION.search(source):
    return _reject(ErrorCode.MISSING_CONTRACT_DECLARATION, "Missing contract declaration. Solidity sources must declare a contract.")

  return ValidationResult(valid=True)
