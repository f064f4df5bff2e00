"""
Task Runner
===========
Runs an ordered list of verification tasks against one project.

Task lifecycle:
    Pending → Running → {Skipped | Passed | Failed}

Execution Rules:
    - Strictly sequential, in the order given. Task N+1 never starts before
      task N reaches a terminal state.
    - A failed task never halts the run; every task gets a result.
    - Unknown task names produce a Failed result with error "Unknown task".

Run outcome:
    success           — True only if no task failed (Skipped counts as success)
    total_duration_ms — sum of per-task durations
    exit_code         — 0 on success, 1 on any failure
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from shipcheck.core.config import DEFAULT_TASK_TIMEOUT
from shipcheck.core.constants import UNKNOWN_TASK_ERROR
from shipcheck.executor.tasks import Task, create_task
from shipcheck.models.task_result import TaskResult, TaskStatus

logger = logging.getLogger(__name__)

TaskFactory = Callable[[str, str], Optional[Task]]


@dataclass
class RunReport:
    """Aggregate outcome of one runner invocation."""
    results: list[TaskResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def failed(self) -> list[TaskResult]:
        return [r for r in self.results if not r.success]

    @property
    def total_duration_ms(self) -> int:
        return sum(r.duration_ms for r in self.results)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def count(self, status: TaskStatus) -> int:
        return sum(1 for r in self.results if r.status == status)


class TaskRunner:
    """
    Sequential task runner.

    Parameters
    ----------
    project_root : str
        Directory the tasks run in.
    timeouts : dict[str, float] | None
        Per-task timeout overrides in seconds.
    default_timeout : float
        Timeout for tasks without an override.
    task_factory : callable
        ``(name, project_root) -> Task | None``; swapped out in tests.
    """

    def __init__(
        self,
        project_root: str,
        timeouts: Optional[dict[str, float]] = None,
        default_timeout: float = DEFAULT_TASK_TIMEOUT,
        task_factory: TaskFactory = create_task,
    ) -> None:
        self.project_root = project_root
        self.timeouts = dict(timeouts or {})
        self.default_timeout = default_timeout
        self._task_factory = task_factory

    def timeout_for(self, name: str) -> float:
        return self.timeouts.get(name, self.default_timeout)

    def run(
        self,
        task_names: list[str],
        on_task_start: Optional[Callable[[str], None]] = None,
        on_task_done: Optional[Callable[[TaskResult], None]] = None,
    ) -> RunReport:
        report = RunReport()
        logger.info("[RUNNER] Running %d task(s): %s", len(task_names), ", ".join(task_names))

        for name in task_names:
            if on_task_start:
                on_task_start(name)
            result = self._run_one(name)
            report.results.append(result)
            logger.info(
                "[RUNNER] %s → %s (%dms)", name, result.status.value, result.duration_ms,
            )
            if on_task_done:
                on_task_done(result)

        logger.info(
            "[RUNNER] Finished | passed=%d | skipped=%d | failed=%d | time=%dms",
            report.count(TaskStatus.PASSED),
            report.count(TaskStatus.SKIPPED),
            report.count(TaskStatus.FAILED),
            report.total_duration_ms,
        )
        return report

    def _run_one(self, name: str) -> TaskResult:
        task = self._task_factory(name, self.project_root)
        if task is None:
            logger.warning("[RUNNER] Unknown task: %s", name)
            return TaskResult.failed(name, UNKNOWN_TASK_ERROR)
        try:
            return task.execute(self.timeout_for(name))
        except Exception as e:
            logger.exception("[RUNNER] Task %s raised", name)
            return TaskResult.failed(name, f"{type(e).__name__}: {e}")
