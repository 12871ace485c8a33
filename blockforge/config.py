"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from blockforge.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the blockforge service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  worker_count: int
  max_source_bytes: int
  compile_timeout_seconds: float
  inspect_timeout_seconds: float
  default_optimizer_runs: int
  solc_bin: str
  soroban_bin: str
  soroban_sdk_version: str
  wasm_target: str
  workspace_root: Path
  artifact_dir: Path
  job_keep_completed: int
  job_keep_failed: int
  job_retention_seconds: float | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("BLOCKFORGE_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("BLOCKFORGE_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("BLOCKFORGE_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("BLOCKFORGE_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("BLOCKFORGE_DEBUG"))

  log_max_bytes = int(os.getenv("BLOCKFORGE_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("BLOCKFORGE_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("BLOCKFORGE_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("BLOCKFORGE_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("BLOCKFORGE_LOG_HTTP_4XX"))

  worker_count = int(os.getenv("BLOCKFORGE_WORKER_COUNT", "2"))
  if worker_count <= 0:
    raise ValueError("BLOCKFORGE_WORKER_COUNT must be a positive integer.")

  max_source_bytes = int(os.getenv("BLOCKFORGE_MAX_SOURCE_BYTES", str(1024 * 1024)))
  if max_source_bytes <= 0:
    raise ValueError("BLOCKFORGE_MAX_SOURCE_BYTES must be a positive integer.")

  default_optimizer_runs = int(os.getenv("BLOCKFORGE_DEFAULT_OPTIMIZER_RUNS", "200"))
  if default_optimizer_runs < 0:
    raise ValueError("BLOCKFORGE_DEFAULT_OPTIMIZER_RUNS must be zero or a positive integer.")

  # Finished jobs beyond these counts, or older than the retention window, are pruned.
  job_keep_completed = int(os.getenv("BLOCKFORGE_JOB_KEEP_COMPLETED", "100"))
  if job_keep_completed < 0:
    raise ValueError("BLOCKFORGE_JOB_KEEP_COMPLETED must be zero or a positive integer.")

  job_keep_failed = int(os.getenv("BLOCKFORGE_JOB_KEEP_FAILED", "500"))
  if job_keep_failed < 0:
    raise ValueError("BLOCKFORGE_JOB_KEEP_FAILED must be zero or a positive integer.")

  job_retention_seconds = float(os.getenv("BLOCKFORGE_JOB_RETENTION_SECONDS", "86400"))
  if job_retention_seconds < 0:
    raise ValueError("BLOCKFORGE_JOB_RETENTION_SECONDS must be zero or a positive number.")

  # Scratch space and artifacts default under the system temp dir for local runs.
  scratch_root = Path(tempfile.gettempdir())
  workspace_root = Path(os.getenv("BLOCKFORGE_WORKSPACE_ROOT") or scratch_root / "blockforge-workspaces")
  artifact_dir = Path(os.getenv("BLOCKFORGE_ARTIFACT_DIR") or scratch_root / "blockforge-artifacts")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("BLOCKFORGE_ALLOWED_ORIGINS")),
    debug=debug,
    log_dir=_optional_str(os.getenv("BLOCKFORGE_LOG_DIR")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    pg_dsn=os.getenv("BLOCKFORGE_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=int(os.getenv("BLOCKFORGE_PG_CONNECT_TIMEOUT", "5")),
    worker_count=worker_count,
    max_source_bytes=max_source_bytes,
    compile_timeout_seconds=_parse_positive_float("BLOCKFORGE_COMPILE_TIMEOUT_SECONDS", "60"),
    inspect_timeout_seconds=_parse_positive_float("BLOCKFORGE_INSPECT_TIMEOUT_SECONDS", "15"),
    default_optimizer_runs=default_optimizer_runs,
    solc_bin=(os.getenv("BLOCKFORGE_SOLC_BIN") or "solc").strip(),
    soroban_bin=(os.getenv("BLOCKFORGE_SOROBAN_BIN") or "soroban").strip(),
    soroban_sdk_version=(os.getenv("BLOCKFORGE_SOROBAN_SDK_VERSION") or "21.0.0").strip(),
    wasm_target=(os.getenv("BLOCKFORGE_WASM_TARGET") or "wasm32-unknown-unknown").strip(),
    workspace_root=workspace_root,
    artifact_dir=artifact_dir,
    job_keep_completed=job_keep_completed,
    job_keep_failed=job_keep_failed,
    job_retention_seconds=job_retention_seconds or None,
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so migrations don't require unrelated env vars.
  debug = _parse_bool(os.getenv("BLOCKFORGE_DEBUG"))
  pg_connect_timeout = int(os.getenv("BLOCKFORGE_PG_CONNECT_TIMEOUT", "5"))
  if pg_connect_timeout <= 0:
    raise ValueError("BLOCKFORGE_PG_CONNECT_TIMEOUT must be a positive integer.")

  pg_dsn = os.getenv("BLOCKFORGE_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
