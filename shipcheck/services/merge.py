"""
Ledger Merge
============
Folds newly classified bugs into a repository ledger.

Merge Rule:
    A new bug matches a ledger bug when (message, task_name, file, line)
    are equal. On a match:
        occurrences += new occurrences
        last_seen   = new last_seen
        priority    = new priority
    Category and suggested fix are filled in only if the ledger entry has
    none. Otherwise the new bug is appended with the next sequential id.

Because every new bug is checked against the entries appended before it,
no two ledger bugs ever share a dedup key after a merge.
"""
import logging

from shipcheck.models.ledger import ProcessedError, RepositoryLedger

logger = logging.getLogger(__name__)


def merge_bugs(ledger: RepositoryLedger, new_bugs: list[ProcessedError]) -> list[ProcessedError]:
    """
    Merge ``new_bugs`` into ``ledger`` in place.

    Returns
    -------
    list[ProcessedError]
        The ledger entries the new bugs landed in, in submission order and
        without repeats.
    """
    index: dict[tuple, ProcessedError] = {bug.dedup_key: bug for bug in ledger.bugs}
    touched: dict[int, ProcessedError] = {}
    updated = appended = 0

    for new in new_bugs:
        existing = index.get(new.dedup_key)
        if existing is not None:
            existing.occurrences += new.occurrences
            existing.last_seen = new.last_seen or existing.last_seen
            existing.priority = new.priority or existing.priority
            if not existing.category and new.category:
                existing.category = new.category
            if not existing.suggested_fix and new.suggested_fix:
                existing.suggested_fix = new.suggested_fix
            entry = existing
            updated += 1
        else:
            entry = new.model_copy(deep=True)
            entry.id = ledger.allocate_bug_id()
            if entry.priority is None:
                entry.priority = entry.severity
            ledger.bugs.append(entry)
            index[entry.dedup_key] = entry
            appended += 1
        touched.setdefault(id(entry), entry)

    logger.info("[TRIAGE] Merge: %d updated, %d appended, %d total", updated, appended, len(ledger.bugs))
    return list(touched.values())
