import base64

import msgspec
from fastapi import APIRouter, Depends
from starlette.responses import Response

from blockforge.api.deps import get_artifact_store
from blockforge.api.msgspec_utils import encode_msgspec_response
from blockforge.services.artifacts import ArtifactStore

router = APIRouter()


class ArtifactResponse(msgspec.Struct, rename="camel", omit_defaults=True):
  """Serialize artifacts with msgspec; WASM payloads can be large."""

  artifact_id: str
  kind: str
  abi: object
  warnings: list[str]
  bytecode: str | None = None
  wasm_base64: str | None = None


@router.get("/{artifact_id}")
async def get_artifact(artifact_id: str, store: ArtifactStore = Depends(get_artifact_store)) -> Response:  # noqa: B008
  """Return a compiled artifact by its content id."""
  artifact = await store.get(artifact_id)
  wasm = artifact.wasm_bytes
  payload = ArtifactResponse(
    artifact_id=artifact.artifact_id,
    kind=artifact.kind,
    abi=artifact.abi,
    warnings=artifact.warnings,
    bytecode=artifact.bytecode,
    wasm_base64=base64.b64encode(wasm).decode("ascii") if wasm is not None else None,
  )
  return encode_msgspec_response(payload)
