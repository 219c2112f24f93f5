"""preflight/engine/tools.py

Thin wrapper around subprocess for the external inspection/render tools.

Rules:
- argv lists only, never a shell string (paths come from untrusted uploads)
- every call has a hard timeout; a timeout is a failure
- subprocess.run kills the child on timeout and on any exception raised
  while waiting, so an abandoned run (e.g. a task time limit) does not
  leave the tool running
"""

from __future__ import annotations

import logging
import subprocess
import time
from typing import Protocol

from preflight.engine.errors import ToolExitError, ToolNotInstalled, ToolTimeout

logger = logging.getLogger("preflight.tools")

# stderr is truncated before it goes into errors/logs
_STDERR_TAIL = 4000


class ToolRunner(Protocol):
    def __call__(self, cmd: list[str], *, timeout_s: float) -> subprocess.CompletedProcess: ...


def run_tool(cmd: list[str], *, timeout_s: float) -> subprocess.CompletedProcess:
    """Run `cmd`, returning the completed process or raising a ToolError."""
    t0 = time.monotonic()
    try:
        proc = subprocess.run(
            cmd,
            check=False,
            capture_output=True,
            text=True,
            # tools echo names from untrusted files; never fail a run on decoding
            errors="replace",
            timeout=timeout_s,
        )
    except FileNotFoundError as e:
        raise ToolNotInstalled(f"{cmd[0]} binary not found on PATH", cmd=cmd) from e
    except subprocess.TimeoutExpired as e:
        logger.warning("tool.timeout", extra={"tool": cmd[0], "timeout_s": timeout_s})
        raise ToolTimeout(f"{cmd[0]} timed out after {timeout_s}s", cmd=cmd, timeout_s=timeout_s) from e

    dt_ms = int((time.monotonic() - t0) * 1000)
    logger.info(
        "tool.run",
        extra={"tool": cmd[0], "returncode": proc.returncode, "duration_ms": dt_ms},
    )

    if proc.returncode != 0:
        stderr = (proc.stderr or "")[-_STDERR_TAIL:]
        raise ToolExitError(
            f"{cmd[0]} exited with code {proc.returncode}",
            cmd=cmd,
            returncode=proc.returncode,
            stderr=stderr,
        )
    return proc
