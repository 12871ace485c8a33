from __future__ import annotations

import pytest

from blockforge.blocks.models import TargetLanguage
from blockforge.compiler.validator import validate_source
from blockforge.core.errors import ErrorCode, ValidationError

SOROBAN_SOURCE = """#![no_std]
use soroban_sdk::{contract, contractimpl, Env};

#[contract]
pub struct Counter;

#[contractimpl]
impl Counter {
    pub fn hello(_env: Env) -> u32 { 1 }
}
"""

SOLIDITY_SOURCE = """// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract Counter {
    uint256 public count;
}
"""


def test_valid_sources_pass() -> None:
  assert validate_source(SOROBAN_SOURCE, TargetLanguage.RUST_SOROBAN).valid
  assert validate_source(SOLIDITY_SOURCE, TargetLanguage.SOLIDITY).valid


def test_rust_without_sdk_import_is_rejected() -> None:
  source = "#[contract]\npub struct Counter;\n"
  result = validate_source(source, "rust-soroban")
  assert not result.valid
  assert result.code == ErrorCode.MISSING_SDK_IMPORT
  assert "soroban_sdk" in (result.error or "")


def test_rust_without_contract_marker_is_rejected() -> None:
  source = "use soroban_sdk::Env;\npub struct Counter;\n"
  result = validate_source(source, "rust-soroban")
  assert not result.valid
  assert result.code == ErrorCode.MISSING_CONTRACT_MARKER
  assert "#[contract]" in (result.error or "")


@pytest.mark.parametrize("source", ["", "   \n\t"])
def test_empty_source_is_rejected(source: str) -> None:
  result = validate_source(source, TargetLanguage.SOLIDITY)
  assert result.code == ErrorCode.EMPTY_SOURCE
  assert result.error == "empty source"


def test_oversized_source_is_rejected_before_other_checks() -> None:
  result = validate_source("x" * 65, TargetLanguage.SOLIDITY, max_bytes=64)
  assert result.code == ErrorCode.SOURCE_TOO_LARGE


def test_solidity_sent_to_stellar_is_cross_chain() -> None:
  result = validate_source(SOLIDITY_SOURCE + "\n// soroban_sdk #[contract]", TargetLanguage.RUST_SOROBAN)
  assert result.code == ErrorCode.CROSS_CHAIN_SOURCE


def test_soroban_sent_to_evm_is_cross_chain() -> None:
  result = validate_source(SOROBAN_SOURCE, TargetLanguage.SOLIDITY)
  assert result.code == ErrorCode.CROSS_CHAIN_SOURCE


def test_solidity_without_declaration_is_rejected() -> None:
  result = validate_source("pragma solidity ^0.8.20;\n", TargetLanguage.SOLIDITY)
  assert result.code == ErrorCode.MISSING_CONTRACT_DECLARATION


def test_raise_for_error_raises_validation_error() -> None:
  with pytest.raises(ValidationError) as exc_info:
    validate_source("", TargetLanguage.RUST_SOROBAN).raise_for_error()
  assert exc_info.value.code == ErrorCode.EMPTY_SOURCE


def test_sdk_mentioned_only_in_comment_passes_heuristic() -> None:
  source = "// soroban_sdk\n#[contract]\npub struct Counter;\n"
  assert validate_source(source, TargetLanguage.RUST_SOROBAN).valid
