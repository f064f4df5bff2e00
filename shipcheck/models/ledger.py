"""
Ledger Models
=============
Pydantic models for the durable per-repository ledger.

The ledger is shared with the dashboard, which stores its own bug and task
fields (title, assignee, labels, ...) in the same JSON document. Both
models therefore keep unknown keys (``extra="allow"``) so a
read-modify-write never drops data the triage pipeline does not own.

Fields (ProcessedError):
    id              — "#<n>", allocated from the ledger's bug counter on first merge
    task_name       — verification task that produced the error
    error_kind      — lint / typecheck / build / test / website / unknown
    severity        — low / medium / high (dashboard entries may also use critical)
    priority        — mirrors severity
    location        — optional file / line / column
    first_seen      — ISO timestamp of the first submission
    last_seen       — ISO timestamp of the most recent submission
    occurrences     — number of times this error has been observed (>= 1)
    category        — short label ("Lint Rule", "Build Issue", ...)
    suggested_fix   — optional human-readable fix
    status, checked — workflow state maintained by the dashboard
"""
import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shipcheck.models.error_report import ErrorLocation

Tier = Literal["low", "medium", "high", "critical"]

DedupKey = tuple[str, str, Optional[str], Optional[int]]

_DIGITS = re.compile(r"\d+")


def numeric_id(item_id: Any) -> Optional[int]:
    """Extract the numeric part of a ledger id ("#12" → 12, "T-3" → 3)."""
    match = _DIGITS.search(str(item_id or ""))
    return int(match.group(0)) if match else None


class LedgerModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ProcessedError(LedgerModel):
    id: str = ""
    task_name: str = ""
    error_kind: str = "unknown"
    severity: Tier = "low"
    message: str = ""
    priority: Optional[Tier] = None
    location: Optional[ErrorLocation] = None
    first_seen: str = ""
    last_seen: str = ""
    occurrences: int = Field(default=1, ge=1)
    category: Optional[str] = None
    suggested_fix: Optional[str] = None
    status: str = "open"
    checked: bool = False

    @property
    def dedup_key(self) -> DedupKey:
        file = self.location.file if self.location else None
        line = self.location.line if self.location else None
        return (self.message, self.task_name, file, line)

    @property
    def is_open(self) -> bool:
        return self.status == "open" and not self.checked


class RepositoryLedger(LedgerModel):
    bugs: list[ProcessedError] = Field(default_factory=list)
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    next_bug_id: int = 1

    def allocate_bug_id(self) -> str:
        """Return the next sequential bug id and advance the counter."""
        existing = [n for n in (numeric_id(b.id) for b in self.bugs) if n is not None]
        candidate = max([self.next_bug_id] + [n + 1 for n in existing])
        self.next_bug_id = candidate + 1
        return f"#{candidate}"
