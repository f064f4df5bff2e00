"""
Next-Suggestion Selector
========================
Picks the single most urgent open item from a repository ledger.

Open:
    status in {"open", "todo"} and not checked

Ordering:
    1. priority, highest first (critical 4 > high 3 > medium 2 > low 1)
    2. bugs before tasks
    3. numeric id, lowest first ("#12" → 12, "T-3" → 3)

Bugs are ranked by severity, tasks by priority. Items without a numeric
id sort after those that have one.
"""
import math
from dataclasses import dataclass
from typing import Any, Optional

from shipcheck.models.ledger import RepositoryLedger, numeric_id
from shipcheck.parser.classification import tier_value

OPEN_STATUSES = ("open", "todo")
COMPLETED_MESSAGE = "All tasks and bugs have been completed or are in progress"
NOT_FOUND_MESSAGE = "Repository not found"


@dataclass(frozen=True)
class Candidate:
    item: dict[str, Any]
    kind: str
    priority: str

    @property
    def sort_key(self) -> tuple:
        number = numeric_id(self.item.get("id"))
        return (
            -tier_value(self.priority),
            0 if self.kind == "bug" else 1,
            number if number is not None else math.inf,
        )


def _is_open(item: dict[str, Any]) -> bool:
    return item.get("status") in OPEN_STATUSES and not item.get("checked", False)


def open_candidates(ledger: RepositoryLedger) -> list[Candidate]:
    candidates = []
    for bug in ledger.bugs:
        data = bug.to_wire()
        if _is_open(data):
            candidates.append(Candidate(item=data, kind="bug", priority=bug.severity))
    for task in ledger.tasks:
        if _is_open(task):
            candidates.append(Candidate(item=task, kind="task", priority=str(task.get("priority", ""))))
    return candidates


def select_next(ledger: RepositoryLedger) -> Optional[Candidate]:
    """The most urgent open item, or None when nothing is open."""
    candidates = open_candidates(ledger)
    if not candidates:
        return None
    return min(candidates, key=lambda c: c.sort_key)


def suggestion_response(ledger: Optional[RepositoryLedger]) -> dict:
    """Build the next-suggestion API body; ``None`` means no ledger exists."""
    if ledger is None:
        return {"suggestion": None, "message": NOT_FOUND_MESSAGE}

    chosen = select_next(ledger)
    if chosen is None:
        return {"suggestion": None, "message": COMPLETED_MESSAGE, "type": "completed"}

    item = chosen.item
    title = item.get("title") or item.get("message") or item.get("id", "")
    suggestion = {
        "id": item.get("id"),
        "title": title,
        "type": chosen.kind,
        "priority": chosen.priority,
        "assignee": item.get("assignee"),
        "description": item.get("description") or item.get("suggestedFix"),
    }
    return {
        "suggestion": {k: v for k, v in suggestion.items() if v is not None},
        "message": f"Next suggested {chosen.kind}: {title}",
    }
