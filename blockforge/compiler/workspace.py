"""Ephemeral per-job scratch directories."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from types import TracebackType

from blockforge.core.errors import NotReadyError, ResourceError

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "blockforge-job-"


class Workspace:
  """A uniquely named directory owned by one compilation attempt.

  ``create`` allocates the directory, ``cleanup`` removes it and is safe to
  call any number of times. Use as a context manager to release it on every
  exit path.
  """

  def __init__(self, root: Path | str | None = None, *, prefix: str = WORKSPACE_PREFIX) -> None:
    self._root = Path(root) if root is not None else None
    self._prefix = prefix
    self._path: Path | None = None
    self._released = False

  @property
  def path(self) -> Path:
    return self.get_path()

  @property
  def is_active(self) -> bool:
    return self._path is not None

  def create(self) -> Path:
    """Allocate the directory and return its path."""
    if self._path is not None or self._released:
      raise ResourceError("Workspace already created")

    try:
      if self._root is not None:
        self._root.mkdir(parents=True, exist_ok=True)
      created = tempfile.mkdtemp(prefix=self._prefix, dir=self._root)
    except OSError as exc:
      raise ResourceError(f"Failed to allocate workspace: {exc}", context={"root": str(self._root or tempfile.gettempdir())}) from exc

    self._path = Path(created)
    logger.debug("Workspace created at %s", self._path)
    return self._path

  def get_path(self) -> Path:
    if self._path is None:
      raise NotReadyError("Workspace not created")
    return self._path

  def cleanup(self) -> None:
    """Remove the directory tree; repeated calls are no-ops."""
    path = self._path
    if path is None:
      return

    self._path = None
    self._released = True
    shutil.rmtree(path, ignore_errors=True)
    if path.exists():
      logger.error("Workspace cleanup left files behind at %s", path)
    else:
      logger.debug("Workspace removed at %s", path)

  def __enter__(self) -> Path:
    return self.create()

  def __exit__(self, exc_type: type[BaseException] | None, exc: BaseException | None, tb: TracebackType | None) -> None:
    self.cleanup()


def sweep_stale_workspaces(root: Path | str, *, prefix: str = WORKSPACE_PREFIX) -> int:
  """Remove workspaces left behind by a previous process; returns the count removed."""
  root_path = Path(root)
  if not root_path.is_dir():
    return 0

  removed = 0
  for entry in root_path.iterdir():
    if entry.is_dir() and entry.name.startswith(prefix):
      shutil.rmtree(entry, ignore_errors=True)
      removed += 1

  if removed:
    logger.warning("Removed %d stale workspaces under %s", removed, root_path)
  return removed
