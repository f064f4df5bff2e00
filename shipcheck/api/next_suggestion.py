"""
GET /api/next-suggestion?owner=&repo=
Returns the most urgent open bug or task for a repository.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from shipcheck.api.deps import MISSING_REPO_ERROR, error_response, get_ledger_store
from shipcheck.services.ledger_store import LedgerError, RedisLedgerStore
from shipcheck.services.suggestion import suggestion_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Triage"])


@router.get("/next-suggestion")
def next_suggestion(
    owner: Optional[str] = None,
    repo: Optional[str] = None,
    store: RedisLedgerStore = Depends(get_ledger_store),
):
    if not owner or not repo:
        return error_response(400, MISSING_REPO_ERROR)
    try:
        ledger = store.load(owner, repo) if store.exists(owner, repo) else None
    except LedgerError as e:
        logger.error("[LEDGER] Could not read %s/%s: %s", owner, repo, e)
        return error_response(500, "Internal server error", str(e))
    return suggestion_response(ledger)
