from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path

import pytest

from blockforge.compiler.process import run_process
from blockforge.core.errors import ErrorCode, InfraError, ToolchainTimeoutError

pytestmark = pytest.mark.skipif(not sys.platform.startswith("linux"), reason="process-group checks rely on /proc")


def _pid_alive(pid: int) -> bool:
  """True while the process exists and is not a zombie."""
  try:
    stat = Path(f"/proc/{pid}/stat").read_text()
  except FileNotFoundError:
    return False
  state = stat.rsplit(")", 1)[-1].split()[0]
  return state != "Z"


async def _wait_until_gone(pid: int, timeout: float = 3.0) -> bool:
  deadline = time.monotonic() + timeout
  while time.monotonic() < deadline:
    if not _pid_alive(pid):
      return True
    await asyncio.sleep(0.05)
  return not _pid_alive(pid)


@pytest.mark.anyio
async def test_run_process_collects_output(tmp_path: Path) -> None:
  result = await run_process([sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"], cwd=tmp_path, timeout_seconds=10)

  assert result.exit_code == 3
  assert result.stdout.strip() == "out"
  assert result.stderr.strip() == "err"


@pytest.mark.anyio
async def test_run_process_passes_stdin(tmp_path: Path) -> None:
  result = await run_process([sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"], cwd=tmp_path, timeout_seconds=10, stdin=b"solc input")
  assert result.stdout.strip() == "SOLC INPUT"


@pytest.mark.anyio
async def test_timeout_kills_process_and_raises(tmp_path: Path) -> None:
  with pytest.raises(ToolchainTimeoutError) as exc_info:
    await run_process([sys.executable, "-c", "import time; time.sleep(30)"], cwd=tmp_path, timeout_seconds=0.5)

  error = exc_info.value
  assert error.code == ErrorCode.COMPILATION_TIMEOUT
  pid = int(error.context["pid"])
  assert not Path(f"/proc/{pid}").exists()


@pytest.mark.anyio
async def test_timeout_kills_the_whole_process_group(tmp_path: Path) -> None:
  child_pid_file = tmp_path / "child.pid"
  script = (
    "import subprocess, sys, time\n"
    "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
    f"open({str(child_pid_file)!r}, 'w').write(str(child.pid))\n"
    "time.sleep(30)\n"
  )

  with pytest.raises(ToolchainTimeoutError):
    await run_process([sys.executable, "-c", script], cwd=tmp_path, timeout_seconds=1.5)

  child_pid = int(child_pid_file.read_text())
  assert await _wait_until_gone(child_pid)


@pytest.mark.anyio
async def test_timeout_kills_background_child_of_exited_leader(tmp_path: Path) -> None:
  # The shell exits at once; the backgrounded sleep keeps stdout open until the deadline.
  with pytest.raises(ToolchainTimeoutError):
    await run_process(["/bin/sh", "-c", "sleep 30 & echo $! > bg.pid; exit 0"], cwd=tmp_path, timeout_seconds=1.0)

  background_pid = int((tmp_path / "bg.pid").read_text())
  assert await _wait_until_gone(background_pid)


@pytest.mark.anyio
async def test_missing_binary_is_infra_error(tmp_path: Path) -> None:
  with pytest.raises(InfraError) as exc_info:
    await run_process([str(tmp_path / "no-such-solc"), "--version"], cwd=tmp_path, timeout_seconds=5)
  assert exc_info.value.code == ErrorCode.TOOLCHAIN_UNAVAILABLE


@pytest.mark.anyio
async def test_cancellation_kills_process(tmp_path: Path) -> None:
  pid_file = tmp_path / "leader.pid"
  script = f"import os, time\nopen({str(pid_file)!r}, 'w').write(str(os.getpid()))\ntime.sleep(30)\n"
  task = asyncio.create_task(run_process([sys.executable, "-c", script], cwd=tmp_path, timeout_seconds=60))

  deadline = time.monotonic() + 5
  while not pid_file.exists() or not pid_file.read_text():
    assert time.monotonic() < deadline
    await asyncio.sleep(0.05)

  task.cancel()
  with pytest.raises(asyncio.CancelledError):
    await task

  assert await _wait_until_gone(int(pid_file.read_text()))
