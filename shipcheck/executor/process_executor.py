"""
Process Executor
================
Runs one external command as a child process and returns a TaskResult.

BOUNDARY RULES:
    - Executor ONLY observes execution.
    - Executor NEVER interprets diagnostics — that is the Error Extractor's job.
    - Executor NEVER decides whether a task should run — that is the Tool Probe's job.

PROCESS STRATEGY:
    - Arguments are passed to the child as a list. No shell is involved,
      so nothing in ``args`` is ever interpreted by a shell.
    - stdout and stderr are captured separately; stdin is closed.
    - The child is killed when the timeout expires. Killing is the only
      cancellation mechanism.

CONTRACT:
    Always returns a TaskResult — never raises. Spawn failures (binary not
    found, permission denied) become failed results with the OS message.
"""
import logging
import shutil
import subprocess
import time
from typing import Optional, Sequence

from shipcheck.core.config import DEFAULT_TASK_TIMEOUT
from shipcheck.core.constants import TIMEOUT_ERROR
from shipcheck.models.task_result import TaskResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Log Excerpt Helper
# ---------------------------------------------------------------------------
_EXCERPT_HEAD_LINES = 30
_EXCERPT_TAIL_LINES = 30


def create_log_excerpt(full_log: str,
                       head: int = _EXCERPT_HEAD_LINES,
                       tail: int = _EXCERPT_TAIL_LINES) -> str:
    """
    Create an abbreviated log showing the first and last N lines.

    Parameters
    ----------
    full_log : str
        The complete task output.
    head : int
        Number of lines to keep from the start.
    tail : int
        Number of lines to keep from the end.

    Returns
    -------
    str
        Abbreviated log string. If the log is short enough, returns it as-is.
    """
    lines = full_log.splitlines()
    total = len(lines)

    if total <= head + tail:
        return full_log

    head_lines = lines[:head]
    tail_lines = lines[-tail:]
    omitted = total - head - tail

    return "\n".join(
        head_lines
        + [f"\n... ({omitted} lines omitted) ...\n"]
        + tail_lines
    )


def _as_text(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _elapsed_ms(start: float) -> int:
    return int(round((time.monotonic() - start) * 1000))


def run_command(
    command: str,
    args: Sequence[str] = (),
    timeout: float = DEFAULT_TASK_TIMEOUT,
    cwd: Optional[str] = None,
) -> TaskResult:
    """
    Execute ``command`` with ``args`` and capture its outcome.

    Parameters
    ----------
    command : str
        Executable name or path (resolved on PATH, so ``npx`` also
        resolves to ``npx.cmd`` on Windows).
    args : Sequence[str]
        Arguments passed verbatim to the child.
    timeout : float
        Seconds before the child is killed.
    cwd : str | None
        Working directory for the child (the project root).

    Returns
    -------
    TaskResult
        ``name`` is the full command line; callers running a named task
        replace it with the task name.
    """
    argv = [shutil.which(command) or command, *args]
    name = " ".join([command, *args])
    start = time.monotonic()

    logger.debug("Spawning: %s (timeout=%.0fs, cwd=%s)", name, timeout, cwd or ".")

    try:
        completed = subprocess.run(
            argv,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        # subprocess.run has already killed and reaped the child
        duration = _elapsed_ms(start)
        logger.warning("Command timed out after %dms: %s", duration, name)
        return TaskResult.failed(name, TIMEOUT_ERROR, output=_as_text(e.stdout), duration_ms=duration)
    except OSError as e:
        duration = _elapsed_ms(start)
        logger.warning("Could not spawn %s: %s", command, e)
        return TaskResult.failed(name, str(e), duration_ms=duration)

    duration = _elapsed_ms(start)
    stdout = completed.stdout or ""
    stderr = completed.stderr or ""
    success = completed.returncode == 0

    logger.info("Command finished | exit=%d | time=%dms | %s", completed.returncode, duration, name)

    return TaskResult(
        name=name,
        success=success,
        output=stdout,
        error=None if success else (stderr or stdout),
        duration_ms=duration,
    )
