import logging
import logging.handlers
import sys
import time
import traceback
from pathlib import Path
from types import TracebackType

from blockforge.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_FORMATTER = logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT)

_LOG_FILE_PATH: Path | None = None
_LOGGING_INITIALIZED = False


class TruncatedFormatter(logging.Formatter):
  """Formatter that truncates the stack trace to the last few lines."""

  # ruff: noqa: N802
  def formatException(self, ei: tuple[type[BaseException] | None, BaseException | None, TracebackType | None]) -> str:
    lines = traceback.format_exception(*ei)
    # Keep header + last 5 lines of traceback
    if len(lines) > 6:
      return "".join(lines[:1] + ["    ...\n"] + lines[-5:])
    return "".join(lines)


def _rotated_name(default_name: str) -> str:
  """Name backups blockforge.log-1 instead of blockforge.log.1."""
  parts = default_name.rsplit(".", 1)
  if len(parts) == 2 and parts[1].isdigit():
    return f"{parts[0]}-{parts[1]}"
  return default_name


def _build_handlers(settings: Settings) -> tuple[list[logging.Handler], Path | None]:
  """Create the stdout handler and, when a log directory is configured, a rotating file handler."""
  stream = logging.StreamHandler(sys.stdout)
  stream.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  handlers: list[logging.Handler] = [stream]

  if settings.log_dir is None:
    return handlers, None

  log_dir = Path(settings.log_dir)
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log directory at {log_dir}: {exc}") from exc

  log_path = log_dir / f"blockforge_{time.strftime('%Y%m%d_%H%M%S')}.log"
  file_handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)
  file_handler.namer = _rotated_name
  file_handler.setFormatter(LOG_FORMATTER)
  handlers.append(file_handler)
  return handlers, log_path


def setup_logging(settings: Settings) -> Path | None:
  """Ensure all loggers use our handlers and propagate to root."""
  handlers, log_path = _build_handlers(settings)
  for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
    log = logging.getLogger(logger_name)
    log.handlers = list(handlers)
    log.propagate = False

  level = logging.DEBUG if settings.debug else logging.INFO
  logging.basicConfig(level=level, handlers=handlers, force=True)
  return log_path


def _initialize_logging(settings: Settings) -> None:
  """Initialize logging and log startup messages."""
  global _LOG_FILE_PATH, _LOGGING_INITIALIZED
  logger = logging.getLogger("blockforge.core.logging")
  if _LOGGING_INITIALIZED:
    return
  _LOG_FILE_PATH = setup_logging(settings)
  _LOGGING_INITIALIZED = True
  if _LOG_FILE_PATH is None:
    logger.info("Logging initialized. Writing to stdout only.")
  else:
    logger.info("Logging initialized. Writing to %s", _LOG_FILE_PATH)
