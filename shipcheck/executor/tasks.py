"""
Verification Tasks
==================
One handler per verification task kind. The set of kinds is closed.

Each handler answers two questions:
    probe()            — is the tool this task needs present? (Tool Probe)
    run(timeout)       — execute and return a TaskResult (Process Executor)

``execute(timeout)`` combines them: an absent tool yields a Skipped
success with a human-readable reason, never a failure.

Task kinds:
    lint       npx eslint . --format json         needs eslint
    typecheck  npx tsc --noEmit                   needs typescript + tsconfig.json
    build      npm run build / framework build    needs a detectable build command
    test       npm test                           needs a "test" npm script
    website    headless browser smoke check       needs playwright / puppeteer
"""
import dataclasses
import logging
from enum import Enum
from typing import Optional

from shipcheck.executor import browser_check, tool_probe
from shipcheck.executor.process_executor import run_command
from shipcheck.models.task_result import TaskResult
from shipcheck.parser.error_extractor import eslint_json_to_lines

logger = logging.getLogger(__name__)

LINT_ARGS = ["eslint", ".", "--max-warnings", "0", "--format", "json"]


class TaskKind(str, Enum):
    LINT = "lint"
    TYPECHECK = "typecheck"
    BUILD = "build"
    TEST = "test"
    WEBSITE = "website"


# ---------------------------------------------------------------------------
# Base Handler
# ---------------------------------------------------------------------------
class Task:
    """Base verification task bound to one project root."""

    kind: TaskKind

    def __init__(self, project_root: str) -> None:
        self.project_root = project_root

    @property
    def name(self) -> str:
        return self.kind.value

    def missing_requirement(self) -> Optional[str]:
        """Reason the task cannot run, or None when it can."""
        return None

    def probe(self) -> bool:
        return self.missing_requirement() is None

    def run(self, timeout: float) -> TaskResult:
        raise NotImplementedError

    def execute(self, timeout: float) -> TaskResult:
        """Probe, then run or skip. The result is always named after the task."""
        reason = self.missing_requirement()
        if reason is not None:
            logger.info("[TASK] %s skipped: %s", self.name, reason)
            return TaskResult.skipped(self.name, reason)
        result = self.run(timeout)
        return dataclasses.replace(result, name=self.name)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------
class LintTask(Task):
    kind = TaskKind.LINT

    def missing_requirement(self) -> Optional[str]:
        if not tool_probe.package_exists(self.project_root, "eslint"):
            return "ESLint not installed"
        return None

    def run(self, timeout: float) -> TaskResult:
        result = run_command("npx", LINT_ARGS, timeout=timeout, cwd=self.project_root)
        if result.success or not result.output:
            return result
        lines = eslint_json_to_lines(result.output, self.project_root)
        if not lines:
            return result
        return dataclasses.replace(result, error=lines)


class TypecheckTask(Task):
    kind = TaskKind.TYPECHECK

    def missing_requirement(self) -> Optional[str]:
        if not tool_probe.package_exists(self.project_root, "typescript"):
            return "TypeScript not installed"
        if not tool_probe.has_file(self.project_root, "tsconfig.json"):
            return "No tsconfig.json found"
        return None

    def run(self, timeout: float) -> TaskResult:
        return run_command("npx", ["tsc", "--noEmit"], timeout=timeout, cwd=self.project_root)


class BuildTask(Task):
    kind = TaskKind.BUILD

    def missing_requirement(self) -> Optional[str]:
        if tool_probe.detect_build_command(self.project_root) is None:
            return "No build script detected"
        return None

    def run(self, timeout: float) -> TaskResult:
        build = tool_probe.detect_build_command(self.project_root)
        if build is None:
            return TaskResult.failed(self.name, "No build script detected")
        logger.info("[TASK] build using: %s %s", build.command, " ".join(build.args))
        return run_command(build.command, build.args, timeout=timeout, cwd=self.project_root)


class TestTask(Task):
    kind = TaskKind.TEST
    __test__ = False  # keep pytest from collecting this class

    def missing_requirement(self) -> Optional[str]:
        if tool_probe.read_package_json(self.project_root) is None:
            return "No package.json found"
        if tool_probe.npm_script(self.project_root, "test") is None:
            return "No test script found"
        return None

    def run(self, timeout: float) -> TaskResult:
        return run_command("npm", ["test"], timeout=timeout, cwd=self.project_root)


BROWSER_PACKAGES = ("playwright", "@playwright/test", "puppeteer", "puppeteer-core")


class WebsiteTask(Task):
    kind = TaskKind.WEBSITE

    def missing_requirement(self) -> Optional[str]:
        if not tool_probe.any_package_exists(self.project_root, *BROWSER_PACKAGES):
            return "No headless browser dependency installed (playwright or puppeteer)"
        return None

    def run(self, timeout: float) -> TaskResult:
        return browser_check.run_website_check(self.project_root, timeout=timeout)


TASK_REGISTRY: dict[str, type[Task]] = {
    TaskKind.LINT.value: LintTask,
    TaskKind.TYPECHECK.value: TypecheckTask,
    TaskKind.BUILD.value: BuildTask,
    TaskKind.TEST.value: TestTask,
    TaskKind.WEBSITE.value: WebsiteTask,
}


def create_task(name: str, project_root: str) -> Optional[Task]:
    """Instantiate the handler for ``name``, or None for an unknown task."""
    task_cls = TASK_REGISTRY.get(name)
    return task_cls(project_root) if task_cls else None
