"""
Error Extractor
===============
Converts a failed task's raw diagnostic output into DetailedError records.

Pipeline:
    1. Pick the pattern for the task (lint / typecheck have structured formats)
    2. Match line by line, one DetailedError per matching line
    3. If nothing matched (or the task has no structured format), emit exactly
       one generic record carrying the full raw text

Formats:
    lint       <file>:<line>:<column>: <error|warning> <message>
    typecheck  <file>(<line>,<column>): <error|warning> <code>: <message>

ESLint runs with --format json; eslint_json_to_lines rewrites its report into
the lint line format before extraction.

Contract:
    - DETERMINISTIC: same text → same records, always.
    - Regex matching only. No LLM in this layer.
    - Never raises, and never returns an empty list for a failed task.
"""
import json
import logging
import os
import re
from typing import Optional

from shipcheck.executor.process_executor import create_log_excerpt
from shipcheck.models.error_report import (
    DetailedError,
    ErrorLocation,
    error_kind_for,
    utc_now_iso,
)
from shipcheck.models.task_result import TaskResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Diagnostic Patterns
# ---------------------------------------------------------------------------
# Static analysis: src/a.ts:10:5: error Missing semicolon
_LINT_LINE = re.compile(
    r"^\s*(?P<file>[^\s:][^:]*?):(?P<line>\d+):(?P<column>\d+):\s*"
    r"(?P<severity>error|warning)\s+(?P<message>.+?)\s*$",
    re.IGNORECASE,
)

# Type checker: src/b.ts(3,1): error TS2322: Type 'string' is not assignable ...
_TYPECHECK_LINE = re.compile(
    r"^\s*(?P<file>.+?)\((?P<line>\d+),(?P<column>\d+)\):\s*"
    r"(?P<severity>error|warning)\s+(?P<code>[A-Za-z]*\d+):\s*(?P<message>.+?)\s*$",
    re.IGNORECASE,
)

_STRUCTURED_PATTERNS: dict[str, re.Pattern] = {
    "lint": _LINT_LINE,
    "typecheck": _TYPECHECK_LINE,
}


def _location(match: re.Match) -> ErrorLocation:
    return ErrorLocation(
        file=match.group("file").strip().replace("\\", "/"),
        line=int(match.group("line")),
        column=int(match.group("column")),
    )


def _message(task_name: str, match: re.Match) -> str:
    if task_name == "typecheck":
        return f"{match.group('code')}: {match.group('message')}"
    return match.group("message")


def _extract_structured(
    task_name: str,
    pattern: re.Pattern,
    raw_text: str,
    duration_ms: int,
    timestamp: str,
) -> list[DetailedError]:
    errors: list[DetailedError] = []
    for line in raw_text.splitlines():
        match = pattern.match(line)
        if match is None:
            continue
        errors.append(DetailedError(
            task_name=task_name,
            error_kind=task_name,
            severity=match.group("severity").lower(),
            message=_message(task_name, match),
            location=_location(match),
            timestamp=timestamp,
            duration_ms=duration_ms,
        ))
    return errors


def _generic_error(
    task_name: str,
    raw_text: str,
    result: Optional[TaskResult],
    timestamp: str,
) -> DetailedError:
    raw_output = create_log_excerpt(result.output) if result and result.output else None
    return DetailedError(
        task_name=task_name,
        error_kind=error_kind_for(task_name),
        severity="error",
        message=raw_text.strip() or f"{task_name} failed without output",
        timestamp=timestamp,
        duration_ms=result.duration_ms if result else 0,
        raw_output=raw_output,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def extract(task_name: str, raw_error_text: str, result: Optional[TaskResult] = None) -> list[DetailedError]:
    """
    Turn raw diagnostic text from ``task_name`` into DetailedError records.

    Parameters
    ----------
    task_name : str
        Name of the task that produced the text.
    raw_error_text : str
        Diagnostic output (stderr, else stdout).
    result : TaskResult | None
        The task's result, used for duration and the raw output excerpt.

    Returns
    -------
    list[DetailedError]
        One record per structured match, or a single generic record.
        Never empty.
    """
    raw_text = raw_error_text or ""
    timestamp = utc_now_iso()
    duration_ms = result.duration_ms if result else 0

    pattern = _STRUCTURED_PATTERNS.get(task_name)
    if pattern is not None:
        try:
            errors = _extract_structured(task_name, pattern, raw_text, duration_ms, timestamp)
        except Exception as e:
            logger.warning("Structured extraction failed for %s: %s", task_name, e, exc_info=True)
            errors = []
        if errors:
            logger.info("Extracted %d structured error(s) from %s output", len(errors), task_name)
            return errors
        logger.info("No structured diagnostics matched for %s, emitting generic record", task_name)

    return [_generic_error(task_name, raw_text, result, timestamp)]


def extract_from_results(results: list[TaskResult]) -> list[DetailedError]:
    """Extract errors for every failed result, in run order."""
    errors: list[DetailedError] = []
    for result in results:
        if result.success:
            continue
        raw_text = result.error or result.output or ""
        errors.extend(extract(result.name, raw_text, result))
    return errors


# ---------------------------------------------------------------------------
# ESLint JSON Output
# ---------------------------------------------------------------------------
_ESLINT_SEVERITY = {2: "error", 1: "warning"}


def eslint_json_to_lines(raw_json: str, project_root: str) -> Optional[str]:
    """
    Rewrite ``eslint --format json`` output into the lint line format.

    Each message becomes ``<file>:<line>:<column>: <severity> <message> (<rule>)``
    with the file made relative to ``project_root``. Messages without a
    position (fatal parse errors on some configs) get line and column 0.

    Returns
    -------
    str | None
        The rewritten text, or None when ``raw_json`` is not ESLint JSON.
    """
    try:
        results = json.loads(raw_json)
    except (TypeError, ValueError):
        return None
    if not isinstance(results, list):
        return None

    lines: list[str] = []
    for entry in results:
        if not isinstance(entry, dict):
            return None
        path = entry.get("filePath") or ""
        if path and os.path.isabs(path):
            path = os.path.relpath(path, project_root)
        path = path.replace("\\", "/")
        for message in entry.get("messages") or []:
            severity = _ESLINT_SEVERITY.get(message.get("severity"), "warning")
            text = " ".join(str(message.get("message", "")).split())
            rule = message.get("ruleId")
            if rule:
                text = f"{text} ({rule})"
            lines.append(
                f"{path}:{message.get('line') or 0}:{message.get('column') or 0}: {severity} {text}"
            )
    return "\n".join(lines)
