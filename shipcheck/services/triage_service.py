"""
Triage Service
==============
Processes one ErrorCollection submission end to end.

Pipeline:
    1. Classify      AI-assisted when a provider is configured, bounded by
                     CLASSIFY_BUDGET_SECONDS; any failure or an exhausted
                     budget falls back to the deterministic classifier
    2. Load          read the repository ledger (LedgerError aborts here,
                     before anything is written)
    3. Merge         fold the classified bugs into the ledger by dedup key
    4. Save          one whole-snapshot write
    5. History       record the execution summary (best-effort)
    6. Respond       counts, tier breakdown, insights and suggestions

Concurrency:
    Load → merge → save is a plain read-modify-write. Two submissions for
    the same repository racing each other resolve as last writer wins.
"""
import asyncio
import logging
from typing import Optional, Protocol

from shipcheck.core.config import CLASSIFY_BUDGET_SECONDS
from shipcheck.models.error_report import ErrorCollection, utc_now_iso
from shipcheck.models.ledger import ProcessedError
from shipcheck.services.classifier import (
    AIClassifier,
    ClassificationResult,
    FallbackClassifier,
)
from shipcheck.services.ledger_store import LedgerError, RedisLedgerStore
from shipcheck.services.merge import merge_bugs

logger = logging.getLogger(__name__)

MAX_FIX_SUGGESTIONS = 3
HOOKS_SUGGESTION_THRESHOLD = 5
HOOKS_SUGGESTION = "Consider setting up automated linting and pre-commit hooks"


class AsyncClassifier(Protocol):
    available: bool

    async def classify(self, errors: list) -> ClassificationResult: ...


def _tier_counts(bugs: list[ProcessedError]) -> dict[str, int]:
    return {
        "high": sum(1 for b in bugs if b.severity == "high"),
        "medium": sum(1 for b in bugs if b.severity == "medium"),
        "low": sum(1 for b in bugs if b.severity == "low"),
    }


def build_suggestions(merged: list[ProcessedError], unique_count: int) -> list[str]:
    """
    Suggestions derived from the merged ledger.

    Only unresolved bugs count. The highest-severity ones lead, followed by
    up to three of their suggested fixes.
    """
    open_bugs = [b for b in merged if b.is_open]
    high = [b for b in open_bugs if b.severity in ("critical", "high")]
    suggestions: list[str] = []
    if high:
        suggestions.append(f"Address {len(high)} high-priority issues first")
        fixes = [b.suggested_fix for b in high if b.suggested_fix]
        suggestions.extend(fixes[:MAX_FIX_SUGGESTIONS])
    if unique_count > HOOKS_SUGGESTION_THRESHOLD:
        suggestions.append(HOOKS_SUGGESTION)
    return suggestions


def _unique_error_view(bug: ProcessedError) -> dict:
    view = {
        "id": bug.id,
        "severity": bug.severity,
        "taskName": bug.task_name,
        "message": bug.message,
        "category": bug.category,
        "location": bug.location.to_wire() if bug.location else None,
        "occurrences": bug.occurrences,
        "suggestedFix": bug.suggested_fix,
    }
    return {k: v for k, v in view.items() if v is not None}


class TriageService:
    """
    Parameters
    ----------
    store : RedisLedgerStore
        Ledger persistence.
    ai_classifier : AsyncClassifier | None
        Preferred classifier; skipped when None or not available.
    fallback : FallbackClassifier | None
        Deterministic classifier used whenever the AI path fails.
    classify_budget : float
        Seconds the AI classifier may take in total before the fallback
        is used instead.
    """

    def __init__(
        self,
        store: RedisLedgerStore,
        ai_classifier: Optional[AsyncClassifier] = None,
        fallback: Optional[FallbackClassifier] = None,
        classify_budget: float = CLASSIFY_BUDGET_SECONDS,
    ) -> None:
        self.store = store
        self.ai_classifier = ai_classifier
        self.fallback = fallback or FallbackClassifier()
        self.classify_budget = classify_budget

    async def classify(self, collection: ErrorCollection) -> ClassificationResult:
        if self.ai_classifier is not None and self.ai_classifier.available:
            try:
                result = await asyncio.wait_for(
                    self.ai_classifier.classify(collection.errors), timeout=self.classify_budget,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "[TRIAGE] AI classification exceeded %.0fs, using deterministic classification",
                    self.classify_budget,
                )
            else:
                if result.ok:
                    return result
                logger.warning("[TRIAGE] Falling back to deterministic classification: %s", result.error)
        return self.fallback.classify(collection.errors)

    async def process(self, collection: ErrorCollection) -> dict:
        """
        Run the full pipeline for one submission.

        Raises
        ------
        LedgerError
            The ledger could not be read or written. Nothing was persisted
            unless the final save itself succeeded.
        """
        repo = collection.repository
        logger.info(
            "[TRIAGE] Processing %d error(s) for %s (stage=%s)",
            len(collection.errors), repo.slug, collection.stage,
        )
        if not collection.errors:
            return {"success": True, "message": "No errors to process", "totalBugs": 0}

        classification = await self.classify(collection)
        classified = classification.bugs

        ledger = self.store.load(repo.owner, repo.repo)
        before = len(ledger.bugs)
        unique = merge_bugs(ledger, classified)
        self.store.save(repo.owner, repo.repo, ledger)
        logger.info(
            "[TRIAGE] %s: %d existing + %d unique → %d bugs (classifier=%s)",
            repo.slug, before, len(classified), len(ledger.bugs), classification.source,
        )

        self._record_execution(collection)

        tiers = _tier_counts(ledger.bugs)
        return {
            "success": True,
            "processed": {
                "original": len(collection.errors),
                "unique": len(classified),
                "total": len(ledger.bugs),
            },
            "priority": tiers,
            "insights": [
                f"Processed {len(collection.errors)} errors into {len(classified)} unique issues",
                f"Total bugs in repository: {len(ledger.bugs)}",
                f"Priority breakdown: {tiers['high']} high, {tiers['medium']} medium, {tiers['low']} low",
            ],
            "suggestions": build_suggestions(ledger.bugs, len(classified)),
            "repository": {
                "owner": repo.owner,
                "repo": repo.repo,
                "lastUpdated": utc_now_iso(),
            },
            "uniqueErrors": [_unique_error_view(b) for b in unique],
            "classifier": classification.source,
        }

    def _record_execution(self, collection: ErrorCollection) -> None:
        wire = collection.to_wire()
        detail = {
            **wire,
            "id": collection.session_id,
            "executedAt": utc_now_iso(),
            "totalDuration": collection.total_duration_ms,
        }
        try:
            self.store.record_execution(collection.repository.owner, collection.repository.repo, detail)
        except LedgerError as e:
            logger.warning("[TRIAGE] Could not record test execution: %s", e)

    def ledger_view(self, owner: str, repo: str) -> dict:
        """Ledger contents for the dashboard, without raw tool output."""
        ledger = self.store.load(owner, repo)
        bugs = []
        for bug in ledger.bugs:
            data = bug.to_wire()
            data.pop("rawOutput", None)
            bugs.append(data)
        return {
            "repository": {"owner": owner, "repo": repo},
            "totalBugs": len(ledger.bugs),
            "totalTasks": len(ledger.tasks),
            "bugs": bugs,
            "tasks": ledger.tasks,
        }
