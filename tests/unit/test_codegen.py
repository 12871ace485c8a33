from __future__ import annotations

import pytest

from blockforge.blocks.models import (
  BlacklistBlock,
  BurnBlock,
  Erc20Block,
  MintBlock,
  MintConfig,
  NftBlock,
  NftConfig,
  PausableBlock,
  StakeBlock,
  TargetLanguage,
  TokenConfig,
  TransferBlock,
  WhitelistBlock,
  WithdrawBlock,
)
from blockforge.codegen.abi import preview_abi
from blockforge.codegen.generator import EMPTY_PLACEHOLDER, NO_BASE_PLACEHOLDER, generate, generate_source
from blockforge.core.errors import InvalidInputError


def _token(name: str = "MyToken") -> Erc20Block:
  return Erc20Block(id="base", config=TokenConfig(name=name, symbol="MTK"))


def test_solidity_token_with_mint_and_pause() -> None:
  blocks = [_token(), MintBlock(id="m"), PausableBlock(id="p")]

  text = generate(blocks, TargetLanguage.SOLIDITY)

  assert text.startswith("// SPDX-License-Identifier: MIT\npragma solidity ^0.8.20;")
  assert "contract MyToken {" in text
  assert "function mint" in text
  assert "bool public paused" in text
  assert "function pause()" in text
  assert "function unpause()" in text
  assert "function burn" not in text
  assert text.endswith("}\n")


def test_disabled_feature_blocks_are_skipped() -> None:
  blocks = [_token(), BurnBlock(id="b", enabled=False)]
  assert "function burn" not in generate(blocks, "solidity")


def test_features_render_in_list_order() -> None:
  text = generate([_token(), PausableBlock(id="p"), MintBlock(id="m")], "solidity")
  assert text.index("// Pausable") < text.index("// Mint")


def test_transfer_paths_carry_access_modifiers() -> None:
  blocks = [_token(), WhitelistBlock(id="w"), BurnBlock(id="b"), TransferBlock(id="t"), PausableBlock(id="p"), BlacklistBlock(id="x"), StakeBlock(id="s")]

  text = generate(blocks, "solidity")

  guards = "public whenNotPaused notBlacklisted onlyWhitelisted"
  assert f"function transfer(address to, uint256 amount) {guards} returns (bool)" in text
  assert f"function transferFrom(address from, address to, uint256 amount) {guards} returns (bool)" in text
  assert f"function burn(uint256 amount) {guards} {{" in text
  assert f"uint256[] calldata amounts) {guards} returns (bool)" in text
  assert f"function stake(uint256 amount) {guards} {{" in text
  assert f"function unstake(uint256 amount) {guards} {{" in text
  for modifier in ("whenNotPaused", "notBlacklisted", "onlyWhitelisted"):
    assert text.count(f"modifier {modifier}()") == 1


def test_nft_transfers_stop_when_paused() -> None:
  blocks = [NftBlock(id="base", config=NftConfig(name="Art")), PausableBlock(id="p"), BurnBlock(id="b")]

  text = generate(blocks, "solidity")

  assert "function transferFrom(address from, address to, uint256 tokenId) public whenNotPaused {" in text
  assert "function burn(uint256 tokenId) public whenNotPaused {" in text
  assert "onlyWhitelisted" not in text


def test_transfer_paths_are_unguarded_without_access_blocks() -> None:
  text = generate([_token(), BurnBlock(id="b"), PausableBlock(id="p", enabled=False)], "solidity")

  assert "function transfer(address to, uint256 amount) public returns (bool)" in text
  assert "function burn(uint256 amount) public {" in text
  assert "whenNotPaused" not in text

def test_mint_cap_is_rendered_when_configured() -> None:
  text = generate([_token(), MintBlock(id="m", config=MintConfig(max_supply=5000))], "solidity")
  assert "uint256 public constant maxSupply = 5000;" in text


def test_empty_block_list_yields_placeholder() -> None:
  generated = generate_source([], TargetLanguage.SOLIDITY)
  assert generated.text == EMPTY_PLACEHOLDER
  assert generated.is_placeholder


def test_missing_base_block_yields_placeholder() -> None:
  generated = generate_source([MintBlock(id="m"), BurnBlock(id="b")], TargetLanguage.RUST_SOROBAN)
  assert generated.text == NO_BASE_PLACEHOLDER
  assert generated.contract_name is None


def test_generation_is_deterministic() -> None:
  blocks = [_token(), MintBlock(id="m"), StakeBlock(id="s")]
  assert generate(blocks, "solidity") == generate(list(blocks), "solidity")
  assert generate(blocks, "rust-soroban") == generate(tuple(blocks), "rust-soroban")


def test_unknown_target_is_invalid_input() -> None:
  with pytest.raises(InvalidInputError, match="Unsupported target language"):
    generate_source([_token()], "vyper")


def test_rust_token_with_mint_and_burn() -> None:
  text = generate([_token(), MintBlock(id="m"), BurnBlock(id="b")], TargetLanguage.RUST_SOROBAN)

  assert "#![no_std]" in text
  assert "use soroban_sdk::" in text
  assert "#[contract]" in text
  assert "pub struct MyToken;" in text
  assert "pub fn mint" in text
  assert "pub fn burn" in text
  assert "pub fn pause" not in text


def test_rust_pausable_feature() -> None:
  text = generate([_token(), PausableBlock(id="p")], TargetLanguage.RUST_SOROBAN)
  assert "pub fn pause" in text
  assert "pub fn unpause" in text


def test_rust_token_supply_is_scaled_by_decimals() -> None:
  block = Erc20Block(id="t", config=TokenConfig(name="Tiny", initial_supply=3, decimals=2))
  assert "write_supply(&env, 300);" in generate([block], TargetLanguage.RUST_SOROBAN)


def test_nft_base_comments_out_unsupported_features() -> None:
  nft = NftBlock(id="n", config=NftConfig(name="Art", symbol="ART"))

  solidity = generate([nft, StakeBlock(id="s")], "solidity")
  assert "// Staking is only available for ERC20 token contracts" in solidity
  assert "function stake" not in solidity

  rust = generate([nft, StakeBlock(id="s"), WithdrawBlock(id="w")], "rust-soroban")
  assert "// Staking is only available for token contracts" in rust
  assert "// Withdraw is only available for token contracts" in rust


def test_names_are_interpolated_verbatim() -> None:
  text = generate([Erc20Block(id="t", config=TokenConfig(name="Odd_Name9", symbol="O$D"))], "solidity")
  assert "contract Odd_Name9 {" in text
  assert 'symbol = "O$D";' in text


def test_preview_abi_lists_feature_functions() -> None:
  names = [entry["name"] for entry in preview_abi([_token(), MintBlock(id="m"), PausableBlock(id="p")])]
  assert names == ["mint", "pause", "unpause", "paused"]


def test_preview_abi_is_empty_without_base() -> None:
  assert preview_abi([MintBlock(id="m")]) == []
