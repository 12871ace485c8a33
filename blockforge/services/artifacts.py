"""Content-addressed filesystem store for compiled artifacts."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

import msgspec
from starlette.concurrency import run_in_threadpool

from blockforge.compiler.toolchain import ArtifactKind, CompiledArtifact
from blockforge.core.errors import ArtifactNotFoundError, ErrorCode, InfraError
from blockforge.utils.compression import compress_bytes, decompress_bytes
from blockforge.utils.ids import artifact_id_for

logger = logging.getLogger(__name__)

_ARTIFACT_ID_RE = re.compile(r"^[0-9a-f]{64}$")
_KINDS: tuple[ArtifactKind, ...] = ("evm", "stellar")


def _write_atomic(path: Path, data: bytes) -> None:
  """Write through a per-writer temp file, then rename over ``path``."""
  fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
  tmp_path = Path(tmp_name)
  try:
    with os.fdopen(fd, "wb") as handle:
      handle.write(data)
    tmp_path.replace(path)
  except OSError:
    tmp_path.unlink(missing_ok=True)
    raise


class ArtifactMetadata(msgspec.Struct, frozen=True, rename="camel"):
  artifact_id: str
  kind: str
  abi: Any
  warnings: list[str] = msgspec.field(default_factory=list)
  size_bytes: int = 0


class StoredArtifact(msgspec.Struct, frozen=True):
  """An artifact read back from the store."""

  artifact_id: str
  kind: str
  abi: Any
  payload: bytes
  warnings: list[str]

  @property
  def bytecode(self) -> str | None:
    if self.kind != "evm":
      return None
    return self.payload.hex()

  @property
  def wasm_bytes(self) -> bytes | None:
    if self.kind != "stellar":
      return None
    return self.payload


class ArtifactStore:
  """Store compiled payloads as ``<root>/<kind>/<id>.br`` with JSON metadata alongside."""

  def __init__(self, root: Path) -> None:
    self._root = Path(root)

  @property
  def root(self) -> Path:
    return self._root

  def _paths(self, kind: str, artifact_id: str) -> tuple[Path, Path]:
    base = self._root / kind
    return base / f"{artifact_id}.br", base / f"{artifact_id}.json"

  def _put_sync(self, artifact: CompiledArtifact) -> str:
    payload = artifact.payload_bytes()
    artifact_id = artifact_id_for(payload)
    blob_path, meta_path = self._paths(artifact.kind, artifact_id)
    if blob_path.is_file() and meta_path.is_file():
      # Identical bytes already stored.
      return artifact_id

    metadata = ArtifactMetadata(artifact_id=artifact_id, kind=artifact.kind, abi=artifact.abi, warnings=list(artifact.warnings), size_bytes=len(payload))
    try:
      blob_path.parent.mkdir(parents=True, exist_ok=True)
      _write_atomic(blob_path, compress_bytes(payload))
      _write_atomic(meta_path, msgspec.json.encode(metadata))
    except OSError as exc:
      # A concurrent writer of the same id may have finished first.
      if blob_path.is_file() and meta_path.is_file():
        logger.debug("Artifact %s written concurrently: %s", artifact_id, exc)
        return artifact_id
      raise InfraError("Failed to persist artifact", code=ErrorCode.INFRA_FAILURE, context={"artifact_id": artifact_id}) from exc
    return artifact_id

  def _get_sync(self, artifact_id: str) -> StoredArtifact:
    for kind in _KINDS:
      blob_path, meta_path = self._paths(kind, artifact_id)
      if not (blob_path.is_file() and meta_path.is_file()):
        continue
      metadata = msgspec.json.decode(meta_path.read_bytes(), type=ArtifactMetadata)
      payload = decompress_bytes(blob_path.read_bytes())
      return StoredArtifact(artifact_id=artifact_id, kind=metadata.kind, abi=metadata.abi, payload=payload, warnings=list(metadata.warnings))
    raise ArtifactNotFoundError("Artifact not found.", context={"artifact_id": artifact_id})

  async def put(self, artifact: CompiledArtifact) -> str:
    """Persist ``artifact`` and return its content-derived id."""
    artifact_id = await run_in_threadpool(self._put_sync, artifact)
    logger.info("Stored %s artifact %s", artifact.kind, artifact_id)
    return artifact_id

  async def get(self, artifact_id: str) -> StoredArtifact:
    if not _ARTIFACT_ID_RE.match(artifact_id):
      raise ArtifactNotFoundError("Artifact not found.", context={"artifact_id": artifact_id})
    return await run_in_threadpool(self._get_sync, artifact_id)

  async def exists(self, artifact_id: str) -> bool:
    try:
      await self.get(artifact_id)
    except ArtifactNotFoundError:
      return False
    return True
