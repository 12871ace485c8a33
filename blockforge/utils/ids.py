"""Identifier and content-hash utilities."""

from __future__ import annotations

import hashlib
import uuid


def generate_job_id() -> str:
  """Return a new job identifier."""
  return str(uuid.uuid4())


def generate_request_id() -> str:
  """Return a new submission request identifier."""
  return str(uuid.uuid4())


def source_hash(source: str) -> str:
  """Return the sha256 hex digest of submitted source text."""
  return hashlib.sha256(source.encode("utf-8")).hexdigest()


def artifact_id_for(payload: bytes) -> str:
  """Content address for compiled bytes (EVM bytecode or WASM)."""
  return hashlib.sha256(payload).hexdigest()
