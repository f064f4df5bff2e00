"""
Error Report Models
===================
Pydantic models for the error submission wire payload.

This is the contract between the CLI (Error Transmitter) and the Triage
Service. On the wire every field is camelCase (``taskName``, ``errorKind``,
``durationMs``); in Python the snake_case names are used. Both spellings
are accepted on input.

Models:
    ErrorLocation       — optional file / line / column of a diagnostic
    DetailedError       — one structured diagnostic from a failed task
    RepositoryIdentity  — owner / repo (+ branch, short commit) from git
    ErrorSummary        — per-task and per-kind counts
    ErrorCollection     — the whole submission for one run
"""
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ErrorKind = Literal["lint", "typecheck", "build", "test", "website", "unknown"]
InputSeverity = Literal["error", "warning"]

ERROR_KINDS: tuple[str, ...] = ("lint", "typecheck", "build", "test", "website")


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a trailing Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def error_kind_for(task_name: str) -> str:
    """Map a task name to its error kind; unknown task names map to "unknown"."""
    return task_name if task_name in ERROR_KINDS else "unknown"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ErrorLocation(WireModel):
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None


class DetailedError(WireModel):
    task_name: str
    error_kind: ErrorKind = "unknown"
    severity: InputSeverity = "error"
    message: str
    location: Optional[ErrorLocation] = None
    timestamp: str = Field(default_factory=utc_now_iso)
    duration_ms: int = 0
    raw_output: Optional[str] = None

    @property
    def file(self) -> Optional[str]:
        return self.location.file if self.location else None

    @property
    def line(self) -> Optional[int]:
        return self.location.line if self.location else None


class RepositoryIdentity(WireModel):
    owner: str
    repo: str
    branch: Optional[str] = None
    commit: Optional[str] = None
    remote_url: Optional[str] = None

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


class ErrorSummary(WireModel):
    by_task: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)


class ErrorCollection(WireModel):
    session_id: str
    repository: RepositoryIdentity
    stage: str = "default"
    total_errors: int = 0
    total_warnings: int = 0
    total_duration_ms: int = 0
    errors: list[DetailedError] = Field(default_factory=list)
    summary: ErrorSummary = Field(default_factory=ErrorSummary)
