from fastapi import APIRouter, Depends

from blockforge.api.models import GenerateRequest, GenerateResponse, ValidateRequest, ValidateResponse
from blockforge.blocks.models import TargetLanguage, parse_blocks
from blockforge.codegen.abi import preview_abi
from blockforge.codegen.generator import generate_source
from blockforge.compiler.validator import validate_source
from blockforge.config import Settings, get_settings

router = APIRouter()


@router.post("/generate", response_model=GenerateResponse)
async def generate(payload: GenerateRequest) -> GenerateResponse:
  """Render source text for a block list without compiling it."""
  blocks = parse_blocks(payload.blocks)
  generated = generate_source(blocks, payload.target)
  abi_preview = None
  if generated.target_language == TargetLanguage.SOLIDITY and not generated.is_placeholder:
    abi_preview = preview_abi(blocks)
  return GenerateResponse(target_language=generated.target_language, contract_name=generated.contract_name, text=generated.text, abi_preview=abi_preview)


@router.post("/validate", response_model=ValidateResponse)
async def validate(payload: ValidateRequest, settings: Settings = Depends(get_settings)) -> ValidateResponse:  # noqa: B008
  """Run the static source pre-checks."""
  result = validate_source(payload.source, payload.target, max_bytes=settings.max_source_bytes)
  return ValidateResponse(valid=result.valid, error=result.error, code=result.code.value if result.code else None)
