"""
Task Result Model
=================
Outcome of one verification task execution.

Created once per task run and never mutated afterwards. The runner, the
error extractor and the CLI all read it; nothing writes back.

Fields:
    name         — task name (e.g. "lint") or the raw command for ad-hoc runs
    success      — True for Passed and Skipped tasks
    output       — captured stdout (or the "Skipped: ..." message)
    error        — failure detail: stderr, else stdout, else an infrastructure message
    duration_ms  — wall clock duration in milliseconds
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SKIPPED = "skipped"
    PASSED = "passed"
    FAILED = "failed"


SKIPPED_PREFIX = "Skipped:"


@dataclass(frozen=True)
class TaskResult:
    name: str
    success: bool
    output: str = ""
    error: Optional[str] = None
    duration_ms: int = 0

    @property
    def status(self) -> TaskStatus:
        """Terminal state of the task this result belongs to."""
        if not self.success:
            return TaskStatus.FAILED
        if self.output.startswith(SKIPPED_PREFIX):
            return TaskStatus.SKIPPED
        return TaskStatus.PASSED

    @classmethod
    def skipped(cls, name: str, reason: str) -> "TaskResult":
        return cls(name=name, success=True, output=f"{SKIPPED_PREFIX} {reason}", duration_ms=0)

    @classmethod
    def failed(cls, name: str, error: str, output: str = "", duration_ms: int = 0) -> "TaskResult":
        return cls(name=name, success=False, output=output, error=error, duration_ms=duration_ms)
