"""
/api/report
===========
POST  Accept an ErrorCollection from the CLI and run it through triage.
GET   Return the stored ledger for ``?owner=&repo=``.

Errors:
    400  missing repository owner / repo
    422  payload does not match the ErrorCollection shape
    500  the ledger store failed; the stored ledger is unchanged
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError

from shipcheck.api.deps import MISSING_REPO_ERROR, error_response, get_triage_service
from shipcheck.models.error_report import ErrorCollection
from shipcheck.services.ledger_store import LedgerError
from shipcheck.services.triage_service import TriageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Triage"])


def _has_repository(payload: object) -> bool:
    if not isinstance(payload, dict):
        return False
    repository = payload.get("repository")
    return isinstance(repository, dict) and bool(repository.get("owner")) and bool(repository.get("repo"))


@router.post("/report")
async def submit_report(request: Request, service: TriageService = Depends(get_triage_service)):
    try:
        payload = await request.json()
    except ValueError:
        return error_response(400, "Request body is not valid JSON")

    if not _has_repository(payload):
        return error_response(400, "Missing repository owner or repo name")

    try:
        collection = ErrorCollection.model_validate(payload)
    except ValidationError as e:
        return error_response(422, "Invalid error collection", str(e))

    try:
        return await service.process(collection)
    except LedgerError as e:
        logger.error("[TRIAGE] Ledger failure for %s: %s", collection.repository.slug, e)
        return error_response(500, "Internal server error", str(e))


@router.get("/report")
def get_report(
    owner: Optional[str] = None,
    repo: Optional[str] = None,
    service: TriageService = Depends(get_triage_service),
):
    if not owner or not repo:
        return error_response(400, MISSING_REPO_ERROR)
    try:
        return jsonable_encoder(service.ledger_view(owner, repo))
    except LedgerError as e:
        logger.error("[LEDGER] Could not read %s/%s: %s", owner, repo, e)
        return error_response(500, "Internal server error", str(e))
