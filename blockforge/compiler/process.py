"""Subprocess execution with a wall-clock budget and process-group teardown."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from blockforge.core.errors import ErrorCode, InfraError, ToolchainTimeoutError

logger = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 2.0


@dataclass(frozen=True)
class ProcessResult:
  argv: tuple[str, ...]
  exit_code: int
  stdout: str
  stderr: str
  pid: int
  duration_seconds: float


def _signal_group(pid: int, sig: signal.Signals) -> None:
  try:
    os.killpg(pid, sig)
  except ProcessLookupError:
    pass


async def _terminate(process: asyncio.subprocess.Process) -> None:
  """Kill the whole process group and reap the leader.

  The group is signalled even when the leader has already exited: a
  background child can outlive it and keep the output pipes open.
  """
  if process.returncode is None:
    _signal_group(process.pid, signal.SIGTERM)
    try:
      await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
    except TimeoutError:
      pass

  _signal_group(process.pid, signal.SIGKILL)
  if process.returncode is None:
    await process.wait()


async def run_process(argv: Sequence[str], *, cwd: Path, timeout_seconds: float, stdin: bytes | None = None, env: Mapping[str, str] | None = None) -> ProcessResult:
  """Run ``argv`` in its own session and collect its output.

  On timeout or task cancellation the process group is killed and reaped
  before returning. Timeouts raise ``ToolchainTimeoutError``; a missing or
  non-executable binary raises ``InfraError``.
  """
  command = tuple(str(part) for part in argv)
  started = time.monotonic()
  try:
    process = await asyncio.create_subprocess_exec(
      *command,
      cwd=str(cwd),
      env=dict(env) if env is not None else None,
      stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
      stdout=asyncio.subprocess.PIPE,
      stderr=asyncio.subprocess.PIPE,
      start_new_session=True,
    )
  except (FileNotFoundError, PermissionError) as exc:
    raise InfraError(f"Toolchain binary unavailable: {command[0]}", code=ErrorCode.TOOLCHAIN_UNAVAILABLE, context={"binary": command[0]}) from exc

  logger.debug("Spawned pid=%s argv=%s cwd=%s", process.pid, command, cwd)
  try:
    stdout, stderr = await asyncio.wait_for(process.communicate(stdin), timeout=timeout_seconds)
  except TimeoutError as exc:
    await _terminate(process)
    logger.warning("Process pid=%s exceeded %.1fs; process group killed", process.pid, timeout_seconds)
    raise ToolchainTimeoutError(f"Compilation exceeded the {timeout_seconds:g}s time limit", context={"pid": process.pid, "timeout_seconds": timeout_seconds}) from exc
  except asyncio.CancelledError:
    await _terminate(process)
    raise

  duration = time.monotonic() - started
  logger.debug("Process pid=%s exited with %s in %.2fs", process.pid, process.returncode, duration)
  return ProcessResult(
    argv=command,
    exit_code=process.returncode if process.returncode is not None else -1,
    stdout=stdout.decode("utf-8", errors="replace"),
    stderr=stderr.decode("utf-8", errors="replace"),
    pid=process.pid,
    duration_seconds=duration,
  )
