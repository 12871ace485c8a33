"""Block list to source text translation."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from blockforge.blocks.models import BaseBlock, Block, FeatureBlock, TargetLanguage, contract_name_for, find_base_block, is_base_block
from blockforge.codegen.solidity import render_solidity
from blockforge.codegen.soroban import render_soroban
from blockforge.core.errors import InvalidInputError

logger = logging.getLogger(__name__)

EMPTY_PLACEHOLDER = "// Add blocks to generate code"
NO_BASE_PLACEHOLDER = "// Start by adding an ERC20 Token or NFT Contract block"

_RENDERERS: dict[TargetLanguage, Callable[[BaseBlock, Sequence[FeatureBlock]], str]] = {
  TargetLanguage.SOLIDITY: render_solidity,
  TargetLanguage.RUST_SOROBAN: render_soroban,
}


@dataclass(frozen=True)
class GeneratedSource:
  """Source text produced from a block list."""

  target_language: TargetLanguage
  text: str
  contract_name: str | None = None

  @property
  def is_placeholder(self) -> bool:
    return self.contract_name is None


def generate_source(blocks: Sequence[Block], target: TargetLanguage | str) -> GeneratedSource:
  """Translate a block list into source text for ``target``.

  The output depends only on the blocks and target, so equal inputs produce
  byte-identical text. Empty lists and lists without an enabled base block
  yield placeholder comments rather than errors.
  """
  try:
    language = TargetLanguage(target)
  except ValueError as exc:
    raise InvalidInputError(f"Unsupported target language: {target}") from exc

  # Work on a snapshot so callers mutating their list mid-render can't affect output.
  snapshot = tuple(blocks)
  if not snapshot:
    return GeneratedSource(target_language=language, text=EMPTY_PLACEHOLDER)

  base = find_base_block(snapshot)
  if base is None:
    return GeneratedSource(target_language=language, text=NO_BASE_PLACEHOLDER)

  features = [block for block in snapshot if block.enabled and not is_base_block(block)]
  text = _RENDERERS[language](base, features)
  logger.debug("Generated %s source for %s with %d features", language.value, contract_name_for(base), len(features))
  return GeneratedSource(target_language=language, text=text, contract_name=contract_name_for(base))


def generate(blocks: Sequence[Block], target: TargetLanguage | str) -> str:
  """Return only the generated text."""
  return generate_source(blocks, target).text
