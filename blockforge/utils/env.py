"""Seed blockforge settings from a local env file."""

from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from pathlib import Path

ENV_FILE_VAR = "BLOCKFORGE_ENV_FILE"
SETTINGS_PREFIX = "BLOCKFORGE_"
_SHARED_KEYS = frozenset({"DATABASE_URL"})


def default_env_path(environ: Mapping[str, str] | None = None) -> Path:
  """Return ``$BLOCKFORGE_ENV_FILE`` or the ``.env`` beside the package."""
  environ = os.environ if environ is None else environ
  configured = (environ.get(ENV_FILE_VAR) or "").strip()
  if configured:
    return Path(configured).expanduser()
  return Path(__file__).resolve().parents[2] / ".env"


def is_settings_key(key: str) -> bool:
  return (key.startswith(SETTINGS_PREFIX) and key != ENV_FILE_VAR) or key in _SHARED_KEYS


def _parse_value(raw: str) -> str:
  value = raw.strip()
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    return value[1:-1]
  # Unquoted values may carry a trailing " # comment".
  return value.split(" #", 1)[0].rstrip()


def load_env_file(path: Path, *, override: bool = False, environ: MutableMapping[str, str] | None = None) -> list[str]:
  """Copy blockforge settings from ``path`` into the environment.

  Only ``BLOCKFORGE_*`` keys and ``DATABASE_URL`` are read; other keys in
  the file are ignored. Returns the keys that were set.
  """
  target = os.environ if environ is None else environ
  if not path.is_file():
    return []

  loaded: list[str] = []
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    line = raw_line.strip()
    if not line or line.startswith("#"):
      continue
    key, sep, value = line.removeprefix("export ").partition("=")
    key = key.strip()
    if not sep or not is_settings_key(key):
      continue
    if not override and key in target:
      continue
    target[key] = _parse_value(value)
    loaded.append(key)
  return loaded
