"""Block model: the typed, ordered feature list a contract is composed from."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import StrEnum
from typing import Annotated, Any

import msgspec

from blockforge.core.errors import InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_NAME = "GeneratedToken"
DEFAULT_TOKEN_SYMBOL = "GTK"
DEFAULT_NFT_NAME = "GeneratedNFT"
DEFAULT_NFT_SYMBOL = "GNFT"
DEFAULT_BASE_URI = "https://ipfs.io/ipfs/"
DEFAULT_INITIAL_SUPPLY = 1_000_000
DEFAULT_SOLIDITY_DECIMALS = 18
DEFAULT_SOROBAN_DECIMALS = 7


class TargetLanguage(StrEnum):
  """Source languages the generator can emit."""

  SOLIDITY = "solidity"
  RUST_SOROBAN = "rust-soroban"


class TokenConfig(msgspec.Struct, frozen=True, forbid_unknown_fields=True, rename="camel"):
  name: str | None = None
  symbol: str | None = None
  initial_supply: Annotated[int, msgspec.Meta(ge=0)] | None = None
  decimals: Annotated[int, msgspec.Meta(ge=0, le=38)] | None = None


class NftConfig(msgspec.Struct, frozen=True, forbid_unknown_fields=True, rename="camel"):
  name: str | None = None
  symbol: str | None = None
  base_uri: str | None = None


class MintConfig(msgspec.Struct, frozen=True, forbid_unknown_fields=True, rename="camel"):
  max_supply: Annotated[int, msgspec.Meta(gt=0)] | None = None


class StakeConfig(msgspec.Struct, frozen=True, forbid_unknown_fields=True, rename="camel"):
  reward_rate_bps: Annotated[int, msgspec.Meta(ge=0, le=10_000)] = 100


class FeatureConfig(msgspec.Struct, frozen=True, forbid_unknown_fields=True):
  """Configuration for feature blocks that take no options."""


class BlockBase(msgspec.Struct, frozen=True, kw_only=True, tag_field="type"):
  """Fields shared by every block variant."""

  id: str | None = None
  name: str = ""
  enabled: bool = True


class Erc20Block(BlockBase, frozen=True, tag="erc20"):
  config: TokenConfig = msgspec.field(default_factory=TokenConfig)


class NftBlock(BlockBase, frozen=True, tag="nft"):
  config: NftConfig = msgspec.field(default_factory=NftConfig)


class MintBlock(BlockBase, frozen=True, tag="mint"):
  config: MintConfig = msgspec.field(default_factory=MintConfig)


class BurnBlock(BlockBase, frozen=True, tag="burn"):
  config: FeatureConfig = msgspec.field(default_factory=FeatureConfig)


class PausableBlock(BlockBase, frozen=True, tag="pausable"):
  config: FeatureConfig = msgspec.field(default_factory=FeatureConfig)


class TransferBlock(BlockBase, frozen=True, tag="transfer"):
  config: FeatureConfig = msgspec.field(default_factory=FeatureConfig)


class StakeBlock(BlockBase, frozen=True, tag="stake"):
  config: StakeConfig = msgspec.field(default_factory=StakeConfig)


class WithdrawBlock(BlockBase, frozen=True, tag="withdraw"):
  config: FeatureConfig = msgspec.field(default_factory=FeatureConfig)


class WhitelistBlock(BlockBase, frozen=True, tag="whitelist"):
  config: FeatureConfig = msgspec.field(default_factory=FeatureConfig)


class BlacklistBlock(BlockBase, frozen=True, tag="blacklist"):
  config: FeatureConfig = msgspec.field(default_factory=FeatureConfig)


BaseBlock = Erc20Block | NftBlock
FeatureBlock = MintBlock | BurnBlock | PausableBlock | TransferBlock | StakeBlock | WithdrawBlock | WhitelistBlock | BlacklistBlock
Block = Erc20Block | NftBlock | MintBlock | BurnBlock | PausableBlock | TransferBlock | StakeBlock | WithdrawBlock | WhitelistBlock | BlacklistBlock

BASE_BLOCK_TYPES: tuple[type[BlockBase], ...] = (Erc20Block, NftBlock)


def is_base_block(block: BlockBase) -> bool:
  return isinstance(block, BASE_BLOCK_TYPES)


def block_type(block: BlockBase) -> str:
  """Return the wire tag of a block instance."""
  return str(type(block).__struct_config__.tag)


def find_base_block(blocks: Sequence[Block]) -> BaseBlock | None:
  """Return the first enabled base block, if any."""
  for block in blocks:
    if block.enabled and isinstance(block, Erc20Block | NftBlock):
      return block
  return None


def parse_blocks(payload: Sequence[Any]) -> list[Block]:
  """Decode a raw JSON block list into typed blocks.

  Missing ids are assigned from the list position. Duplicate ids and more
  than one enabled base block are rejected as invalid input.
  """
  try:
    blocks = msgspec.convert(list(payload), type=list[Block])
  except msgspec.ValidationError as exc:
    raise InvalidInputError(f"Invalid block list: {exc}") from exc

  normalized: list[Block] = []
  seen_ids: set[str] = set()
  enabled_bases = 0
  for index, block in enumerate(blocks):
    if block.id is None or block.id.strip() == "":
      block = msgspec.structs.replace(block, id=f"block-{index}")

    if block.id in seen_ids:
      raise InvalidInputError(f"Duplicate block id: {block.id}", context={"block_id": block.id})
    seen_ids.add(block.id)

    if block.enabled and is_base_block(block):
      enabled_bases += 1
    normalized.append(block)

  if enabled_bases > 1:
    raise InvalidInputError("Only one enabled base block (erc20 or nft) is allowed per contract.")

  logger.debug("Parsed %d blocks (%d base)", len(normalized), enabled_bases)
  return normalized


def contract_name_for(base: BaseBlock) -> str:
  """Contract identifier for a base block; the configured name is used verbatim."""
  if isinstance(base, Erc20Block):
    return base.config.name or DEFAULT_TOKEN_NAME
  return base.config.name or DEFAULT_NFT_NAME
