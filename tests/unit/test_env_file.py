from __future__ import annotations

from pathlib import Path

from blockforge.utils.env import default_env_path, load_env_file


def _write_env(tmp_path: Path, body: str) -> Path:
  path = tmp_path / "blockforge.env"
  path.write_text(body, encoding="utf-8")
  return path


def test_only_blockforge_keys_are_loaded(tmp_path: Path) -> None:
  path = _write_env(
    tmp_path,
    "# local overrides\n"
    "BLOCKFORGE_WORKER_COUNT=4\n"
    "export BLOCKFORGE_SOLC_BIN='/opt/solc 0.8'\n"
    "DATABASE_URL=\"postgresql://user@db/blockforge\"\n"
    "AWS_SECRET_ACCESS_KEY=should-not-load\n"
    "PATH=/tmp/evil\n"
    "not a pair\n",
  )
  environ: dict[str, str] = {}

  loaded = load_env_file(path, environ=environ)

  assert loaded == ["BLOCKFORGE_WORKER_COUNT", "BLOCKFORGE_SOLC_BIN", "DATABASE_URL"]
  assert environ == {"BLOCKFORGE_WORKER_COUNT": "4", "BLOCKFORGE_SOLC_BIN": "/opt/solc 0.8", "DATABASE_URL": "postgresql://user@db/blockforge"}


def test_existing_values_win_unless_overridden(tmp_path: Path) -> None:
  path = _write_env(tmp_path, "BLOCKFORGE_ENV=staging  # deployed tier\n")
  environ = {"BLOCKFORGE_ENV": "production"}

  assert load_env_file(path, environ=environ) == []
  assert environ["BLOCKFORGE_ENV"] == "production"

  assert load_env_file(path, override=True, environ=environ) == ["BLOCKFORGE_ENV"]
  assert environ["BLOCKFORGE_ENV"] == "staging"


def test_env_file_location_is_configurable(tmp_path: Path) -> None:
  custom = tmp_path / "custom.env"
  assert default_env_path({"BLOCKFORGE_ENV_FILE": str(custom)}) == custom
  assert default_env_path({}).name == ".env"


def test_env_file_cannot_redirect_itself(tmp_path: Path) -> None:
  path = _write_env(tmp_path, f"BLOCKFORGE_ENV_FILE={tmp_path / 'other.env'}\nBLOCKFORGE_DEBUG=1\n")
  environ: dict[str, str] = {}

  assert load_env_file(path, environ=environ) == ["BLOCKFORGE_DEBUG"]


def test_missing_file_loads_nothing(tmp_path: Path) -> None:
  assert load_env_file(tmp_path / "absent.env", environ={}) == []
