"""
/api/test-executions
====================
GET     Execution history for ``?owner=&repo=``, newest first.
        ``detailed=true`` returns full records instead of summaries.
DELETE  Clear the execution history for the repository.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from shipcheck.api.deps import MISSING_REPO_ERROR, error_response, get_ledger_store
from shipcheck.services.ledger_store import LedgerError, RedisLedgerStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["History"])


@router.get("/test-executions")
def list_test_executions(
    owner: Optional[str] = None,
    repo: Optional[str] = None,
    detailed: bool = False,
    store: RedisLedgerStore = Depends(get_ledger_store),
):
    if not owner or not repo:
        return error_response(400, MISSING_REPO_ERROR)
    try:
        executions = store.list_executions(owner, repo, detailed=detailed)
    except LedgerError as e:
        logger.error("[LEDGER] %s", e)
        return error_response(500, "Internal server error", str(e))
    return {
        "repository": {"owner": owner, "repo": repo},
        "executions": executions,
        "total": len(executions),
    }


@router.delete("/test-executions")
def clear_test_executions(
    owner: Optional[str] = None,
    repo: Optional[str] = None,
    store: RedisLedgerStore = Depends(get_ledger_store),
):
    if not owner or not repo:
        return error_response(400, MISSING_REPO_ERROR)
    try:
        deleted = store.clear_executions(owner, repo)
    except LedgerError as e:
        logger.error("[LEDGER] %s", e)
        return error_response(500, "Internal server error", str(e))
    return {
        "message": f"Cleared {deleted} test executions for {owner}/{repo}",
        "deletedCount": deleted,
    }
