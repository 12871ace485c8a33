"""ABI preview for the functions feature blocks add to a Solidity contract."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from blockforge.blocks.models import (
  BlacklistBlock,
  Block,
  BurnBlock,
  Erc20Block,
  MintBlock,
  PausableBlock,
  StakeBlock,
  TransferBlock,
  WhitelistBlock,
  WithdrawBlock,
  find_base_block,
  is_base_block,
)


def _param(name: str, type_: str) -> dict[str, str]:
  return {"name": name, "type": type_}


def _function(name: str, inputs: list[dict[str, str]], *, outputs: list[dict[str, str]] | None = None, mutability: str = "nonpayable") -> dict[str, Any]:
  return {"type": "function", "name": name, "inputs": inputs, "outputs": outputs or [], "stateMutability": mutability}


def _feature_entries(block: Block, *, is_token: bool) -> list[dict[str, Any]]:
  match block:
    case MintBlock():
      if is_token:
        return [_function("mint", [_param("to", "address"), _param("amount", "uint256")])]
      return [_function("mint", [_param("to", "address")], outputs=[_param("", "uint256")])]
    case BurnBlock():
      return [_function("burn", [_param("amount" if is_token else "tokenId", "uint256")])]
    case TransferBlock():
      if is_token:
        return [_function("batchTransfer", [_param("recipients", "address[]"), _param("amounts", "uint256[]")], outputs=[_param("", "bool")])]
      return [_function("batchTransfer", [_param("to", "address"), _param("tokenIds", "uint256[]")])]
    case PausableBlock():
      return [_function("pause", []), _function("unpause", []), _function("paused", [], outputs=[_param("", "bool")], mutability="view")]
    case StakeBlock():
      if not is_token:
        return []
      return [
        _function("stake", [_param("amount", "uint256")]),
        _function("unstake", [_param("amount", "uint256")]),
        _function("pendingReward", [_param("account", "address")], outputs=[_param("", "uint256")], mutability="view"),
      ]
    case WithdrawBlock():
      return [_function("withdraw", [])]
    case WhitelistBlock():
      return [_function("addToWhitelist", [_param("account", "address")]), _function("removeFromWhitelist", [_param("account", "address")])]
    case BlacklistBlock():
      return [_function("addToBlacklist", [_param("account", "address")]), _function("removeFromBlacklist", [_param("account", "address")])]
    case _:
      return []


def preview_abi(blocks: Sequence[Block]) -> list[dict[str, Any]]:
  """Return ABI entries contributed by the enabled feature blocks, in list order."""
  base = find_base_block(blocks)
  if base is None:
    return []
  is_token = isinstance(base, Erc20Block)
  entries: list[dict[str, Any]] = []
  for block in blocks:
    if not block.enabled or is_base_block(block):
      continue
    entries.extend(_feature_entries(block, is_token=is_token))
  return entries
