"""CLI entrypoint for shipcheck.

Commands:
    shipcheck test   Run the verification tasks for a stage against the
                     current project and report failures to the triage service.
    shipcheck serve  Start the triage service (FastAPI app in ``main``).

Exit codes for ``test``: 0 when every task passed or was skipped, 1 when
any task failed.
"""
import logging
import os
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.rule import Rule

from shipcheck.core.config import DEFAULT_TASK_TIMEOUT, SHIPCHECK_REPORT_URL
from shipcheck.core.constants import MAX_ERROR_LINES, STAGES, UNKNOWN_TASK_ERROR
from shipcheck.core.stage_config import load_stage_config, resolve_stage_tasks
from shipcheck.executor.task_runner import RunReport, TaskRunner
from shipcheck.models.task_result import SKIPPED_PREFIX, TaskResult, TaskStatus
from shipcheck.parser.error_extractor import extract_from_results
from shipcheck.services.report_client import (
    build_error_collection,
    resolve_repository_identity,
    transmit,
)
from shipcheck.utils.logging_config import setup_logging

app = typer.Typer(
    name="shipcheck",
    help="Build verification task runner with error triage.",
    add_completion=False,
)

console = Console()
logger = logging.getLogger(__name__)

_STATUS_ICONS = {
    TaskStatus.PASSED: "[green]✅[/green]",
    TaskStatus.SKIPPED: "[yellow]⏭[/yellow]",
    TaskStatus.FAILED: "[red]❌[/red]",
}


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------
def _print_status_line(result: TaskResult) -> None:
    icon = _STATUS_ICONS[result.status]
    console.print(f"{icon} [bold]{escape(result.name)}[/bold] [dim]({result.duration_ms}ms)[/dim]")
    if result.output.startswith(SKIPPED_PREFIX):
        console.print(f"   [dim]{escape(result.output)}[/dim]")
    if not result.success and result.error:
        first_line = result.error.strip().splitlines()[0] if result.error.strip() else ''
        console.print(f"   [red]Error:[/red] {escape(first_line)}")


def _line_style(line: str) -> str:
    lowered = line.lower()
    if "error" in lowered:
        return "red"
    if "warning" in lowered:
        return "yellow"
    if line.lstrip().startswith("at ") or ":" in line:
        return "blue"
    return "dim"


def _print_breakdown(result: TaskResult) -> None:
    """First MAX_ERROR_LINES non-blank lines of a failing task's error."""
    if not result.error or UNKNOWN_TASK_ERROR in result.error:
        return
    lines = [line for line in result.error.splitlines() if line.strip()]
    console.print(f"\n[red]📋 {escape(result.name)} Details:[/red]")
    console.print(Rule(style="dim"))
    for line in lines[:MAX_ERROR_LINES]:
        console.print(f"  {escape(line)}", style=_line_style(line))
    if len(lines) > MAX_ERROR_LINES:
        console.print(f"  ... and {len(lines) - MAX_ERROR_LINES} more lines", style="dim")


def _report_failures(report: RunReport, project_root: str, stage: Optional[str],
                     repo_override: Optional[str], url: str) -> None:
    errors = extract_from_results(report.results)
    if not errors:
        return

    identity = resolve_repository_identity(project_root, repo_override)
    if identity is None:
        console.print(
            "\n[yellow]⚠ Could not determine the repository (no git remote or "
            "project.repo in config); errors were not reported.[/yellow]"
        )
        return

    collection = build_error_collection(
        errors, identity, stage=stage, total_duration_ms=report.total_duration_ms,
    )
    with console.status(f"Reporting {len(errors)} error(s) to triage service..."):
        outcome = transmit(collection, url=url)

    if outcome.sent:
        processed = (outcome.response or {}).get("processed", {})
        detail = f" ({processed.get('unique')} unique)" if processed.get("unique") is not None else ""
        console.print(f"\n[green]📤 Reported {len(errors)} error(s) for {identity.slug}{detail}[/green]")
    else:
        console.print(f"\n[yellow]⚠ Could not report errors: {escape(outcome.error or 'unknown error')}[/yellow]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@app.callback()
def main() -> None:
    """Build verification task runner with error triage."""


@app.command()
def test(
    stage: Optional[str] = typer.Option(
        None,
        "--stage",
        "-s",
        help=f"Stage to run: {', '.join(STAGES)} (default: pre-push).",
    ),
    run_all: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Run every known task regardless of stage.",
    ),
    cwd: Optional[str] = typer.Option(
        None,
        "--cwd",
        help="Project root to verify (default: current directory).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        "-t",
        min=1,
        help=f"Per-task timeout in seconds (default: config or {DEFAULT_TASK_TIMEOUT:.0f}).",
    ),
    send_report: bool = typer.Option(
        True,
        "--report/--no-report",
        help="Send failures to the triage service.",
    ),
    report_url: str = typer.Option(
        SHIPCHECK_REPORT_URL,
        "--report-url",
        help="Triage endpoint for failure reports.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
) -> None:
    """Run the verification tasks for a stage."""
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING, log_dir=None)

    project_root = os.path.abspath(cwd or os.getcwd())
    config = load_stage_config(project_root)
    task_names = resolve_stage_tasks(config, stage, run_all=run_all)

    if not task_names:
        console.print("[blue]ℹ No tasks configured to run[/blue]")
        raise typer.Exit(code=0)

    timeouts = dict(config.timeouts)
    if timeout is not None:
        timeouts = {name: timeout for name in task_names}
    runner = TaskRunner(project_root, timeouts=timeouts)

    console.print(f"Running {len(task_names)} task(s): [bold]{escape(', '.join(task_names))}[/bold]")
    with console.status("Starting...") as status:
        run_report = runner.run(
            task_names,
            on_task_start=lambda name: status.update(f"Running {escape(name)}..."),
        )

    console.print("\n[bold]Test Results:[/bold]")
    console.print(Rule(style="dim"))
    for result in run_report.results:
        _print_status_line(result)
    console.print(Rule(style="dim"))

    if run_report.success:
        console.print(f"\n[green]✅ All tasks passed! ({run_report.total_duration_ms}ms total)[/green]")
        raise typer.Exit(code=0)

    failed = run_report.failed
    console.print(f"\n[red]❌ {len(failed)} task(s) failed![/red]")
    for result in failed:
        _print_breakdown(result)

    if send_report:
        _report_failures(run_report, project_root, stage, config.repo_override, report_url)

    raise typer.Exit(code=run_report.exit_code)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    """Start the triage service."""
    import uvicorn

    uvicorn.run("main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
