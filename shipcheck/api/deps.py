"""
API Dependencies
================
Shared service instances for the route handlers.

Handlers receive these through ``Depends`` so tests can swap them with
``app.dependency_overrides``.
"""
from functools import lru_cache

from fastapi.responses import JSONResponse

from shipcheck.services.classifier import AIClassifier
from shipcheck.services.ledger_store import RedisLedgerStore
from shipcheck.services.triage_service import TriageService

MISSING_REPO_ERROR = "Missing owner or repo parameter"


@lru_cache(maxsize=1)
def get_ledger_store() -> RedisLedgerStore:
    return RedisLedgerStore()


@lru_cache(maxsize=1)
def get_triage_service() -> TriageService:
    return TriageService(store=get_ledger_store(), ai_classifier=AIClassifier())


def error_response(status_code: int, error: str, message: str = "") -> JSONResponse:
    body = {"success": False, "error": error}
    if message:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)
