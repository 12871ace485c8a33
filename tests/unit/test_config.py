from __future__ import annotations

from collections.abc import Iterator

import pytest

from blockforge.config import get_database_settings, get_settings


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
  get_settings.cache_clear()
  get_database_settings.cache_clear()
  yield
  get_settings.cache_clear()
  get_database_settings.cache_clear()


def test_origins_are_required(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.delenv("BLOCKFORGE_ALLOWED_ORIGINS", raising=False)
  with pytest.raises(ValueError, match="must be set"):
    get_settings()


def test_wildcard_origin_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("BLOCKFORGE_ALLOWED_ORIGINS", "http://a.test, *")
  with pytest.raises(ValueError, match="wildcard"):
    get_settings()


def test_settings_parse_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
  monkeypatch.setenv("BLOCKFORGE_ALLOWED_ORIGINS", "http://a.test, http://b.test")
  monkeypatch.setenv("BLOCKFORGE_DEBUG", "yes")
  monkeypatch.setenv("BLOCKFORGE_WORKER_COUNT", "4")
  monkeypatch.setenv("BLOCKFORGE_COMPILE_TIMEOUT_SECONDS", "12.5")
  monkeypatch.setenv("BLOCKFORGE_SOLC_BIN", " /opt/solc ")
  monkeypatch.setenv("BLOCKFORGE_WORKSPACE_ROOT", str(tmp_path / "ws"))

  settings = get_settings()

  assert settings.allowed_origins == ("http://a.test", "http://b.test")
  assert settings.debug is True
  assert settings.worker_count == 4
  assert settings.compile_timeout_seconds == 12.5
  assert settings.solc_bin == "/opt/solc"
  assert settings.workspace_root == tmp_path / "ws"


@pytest.mark.parametrize(("name", "value"), [("BLOCKFORGE_WORKER_COUNT", "0"), ("BLOCKFORGE_COMPILE_TIMEOUT_SECONDS", "-1"), ("BLOCKFORGE_MAX_SOURCE_BYTES", "0"), ("BLOCKFORGE_JOB_KEEP_FAILED", "-1"), ("BLOCKFORGE_JOB_RETENTION_SECONDS", "-5")])
def test_non_positive_limits_are_rejected(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
  monkeypatch.setenv("BLOCKFORGE_ALLOWED_ORIGINS", "http://a.test")
  monkeypatch.setenv(name, value)
  with pytest.raises(ValueError, match=name):
    get_settings()


def test_job_retention_defaults_and_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("BLOCKFORGE_ALLOWED_ORIGINS", "http://a.test")
  defaults = get_settings()
  assert (defaults.job_keep_completed, defaults.job_keep_failed, defaults.job_retention_seconds) == (100, 500, 86400.0)

  get_settings.cache_clear()
  monkeypatch.setenv("BLOCKFORGE_JOB_KEEP_COMPLETED", "5")
  monkeypatch.setenv("BLOCKFORGE_JOB_RETENTION_SECONDS", "0")
  overridden = get_settings()
  assert overridden.job_keep_completed == 5
  assert overridden.job_retention_seconds is None

def test_database_settings_do_not_need_origins(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.delenv("BLOCKFORGE_ALLOWED_ORIGINS", raising=False)
  monkeypatch.setenv("DATABASE_URL", "postgresql://user@db/blockforge")

  settings = get_database_settings()

  assert settings.pg_dsn == "postgresql://user@db/blockforge"
