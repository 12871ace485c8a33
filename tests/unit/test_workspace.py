from __future__ import annotations

from pathlib import Path

import pytest

from blockforge.compiler.workspace import WORKSPACE_PREFIX, Workspace, sweep_stale_workspaces
from blockforge.core.errors import ErrorCode, NotReadyError, ResourceError


def test_create_then_cleanup_removes_directory(tmp_path: Path) -> None:
  workspace = Workspace(tmp_path)
  path = workspace.create()
  (path / "contract.sol").write_text("contract A {}", encoding="utf-8")

  assert path.is_dir()
  assert path.parent == tmp_path
  assert path.name.startswith(WORKSPACE_PREFIX)

  workspace.cleanup()
  assert not path.exists()


def test_cleanup_is_idempotent(tmp_path: Path) -> None:
  workspace = Workspace(tmp_path)
  workspace.create()
  workspace.cleanup()
  workspace.cleanup()
  assert not workspace.is_active


def test_get_path_before_create_raises_not_ready(tmp_path: Path) -> None:
  with pytest.raises(NotReadyError) as exc_info:
    Workspace(tmp_path).get_path()
  assert exc_info.value.code == ErrorCode.WORKSPACE_NOT_READY


def test_second_create_is_rejected(tmp_path: Path) -> None:
  workspace = Workspace(tmp_path)
  workspace.create()
  with pytest.raises(ResourceError):
    workspace.create()
  workspace.cleanup()


def test_unwritable_root_raises_resource_error(tmp_path: Path) -> None:
  blocker = tmp_path / "not-a-dir"
  blocker.write_text("", encoding="utf-8")
  with pytest.raises(ResourceError) as exc_info:
    Workspace(blocker / "nested").create()
  assert exc_info.value.code == ErrorCode.WORKSPACE_UNAVAILABLE


def test_workspaces_are_unique(tmp_path: Path) -> None:
  with Workspace(tmp_path) as first, Workspace(tmp_path) as second:
    assert first != second


def test_context_manager_releases_on_error(tmp_path: Path) -> None:
  captured: list[Path] = []
  with pytest.raises(RuntimeError):
    with Workspace(tmp_path) as path:
      captured.append(path)
      raise RuntimeError("boom")
  assert not captured[0].exists()


def test_sweep_stale_workspaces_only_removes_prefixed_dirs(tmp_path: Path) -> None:
  (tmp_path / f"{WORKSPACE_PREFIX}old1").mkdir()
  (tmp_path / f"{WORKSPACE_PREFIX}old2" / "target").mkdir(parents=True)
  (tmp_path / "keep-me").mkdir()

  assert sweep_stale_workspaces(tmp_path) == 2
  assert [entry.name for entry in tmp_path.iterdir()] == ["keep-me"]
  assert sweep_stale_workspaces(tmp_path / "missing") == 0
