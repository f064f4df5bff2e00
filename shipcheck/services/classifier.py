"""
Triage Classifiers
==================
Turn a submission's DetailedErrors into deduplicated ProcessedErrors.

Two strategies, selected at the call site:

    AIClassifier
        Sends the errors to the LLM provider chain (Gemini → Groq), which
        clusters near-duplicates and assigns tier, category and suggested
        fix. The reply is validated with pydantic; anything unusable is a
        failed ClassificationResult, never an exception.

    FallbackClassifier
        Deterministic. Dedups by the ledger dedup key (message,
        task_name, file, line) and assigns the tier from the explicit
        severity table. Same input, same output, in any order.

Neither strategy allocates ids; that happens when bugs are merged into
the ledger.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from shipcheck.llm.client import LLMClient
from shipcheck.llm.prompts import SYSTEM_PROMPT, build_triage_prompt
from shipcheck.llm.router import LLMRouter
from shipcheck.models.error_report import DetailedError, ErrorLocation, utc_now_iso
from shipcheck.models.ledger import ProcessedError
from shipcheck.parser.classification import classify_error

logger = logging.getLogger(__name__)


@dataclass
class ClassificationResult:
    """Outcome of one classification attempt."""
    ok: bool
    bugs: list[ProcessedError] = field(default_factory=list)
    error: Optional[str] = None
    source: str = "fallback"


# ---------------------------------------------------------------------------
# Deterministic fallback
# ---------------------------------------------------------------------------
class FallbackClassifier:
    """Exact-match dedup plus the explicit severity table."""

    source = "fallback"

    def classify(self, errors: list[DetailedError]) -> ClassificationResult:
        by_key: dict[tuple, ProcessedError] = {}
        for error in errors:
            key = (error.message, error.task_name, error.file, error.line)
            existing = by_key.get(key)
            if existing is not None:
                existing.occurrences += 1
                existing.last_seen = max(existing.last_seen, error.timestamp)
                continue
            rule = classify_error(error)
            by_key[key] = ProcessedError(
                task_name=error.task_name,
                error_kind=error.error_kind,
                severity=rule.severity,
                priority=rule.severity,
                message=error.message,
                location=error.location,
                first_seen=error.timestamp,
                last_seen=error.timestamp,
                occurrences=1,
                category=rule.category,
            )
        bugs = list(by_key.values())
        logger.info("[TRIAGE] Fallback classified %d error(s) into %d bug(s)", len(errors), len(bugs))
        return ClassificationResult(ok=True, bugs=bugs, source=self.source)


# ---------------------------------------------------------------------------
# AI-assisted
# ---------------------------------------------------------------------------
class _ReplyModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AIUniqueError(_ReplyModel):
    original_indexes: list[int] = Field(default_factory=list)
    task_name: Optional[str] = None
    error_type: Optional[str] = None
    severity: Literal["low", "medium", "high"]
    message: str
    category: Optional[str] = None
    suggested_fix: Optional[str] = None
    occurrences: int = Field(default=1, ge=1)
    representative_location: Optional[ErrorLocation] = None


class AITriageReply(_ReplyModel):
    unique_errors: list[AIUniqueError]


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        if first_newline != -1:
            cleaned = cleaned[first_newline + 1:]
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3].rstrip()
    return cleaned


def parse_triage_reply(raw: str) -> AITriageReply:
    """
    Parse and validate an LLM triage reply.

    Raises
    ------
    ValueError
        If the reply is not JSON or does not match the expected shape
        (pydantic's ValidationError is a ValueError).
    """
    data = json.loads(strip_code_fences(raw))
    return AITriageReply.model_validate(data)


class AIClassifier:
    """LLM-backed classifier; see module docstring."""

    source = "ai"

    def __init__(self, client: Optional[LLMClient] = None, router: Optional[LLMRouter] = None) -> None:
        self.client = client or LLMClient()
        self.router = router or LLMRouter()

    @property
    def available(self) -> bool:
        return self.router.has_configured_provider

    async def classify(self, errors: list[DetailedError]) -> ClassificationResult:
        if not errors:
            return ClassificationResult(ok=True, bugs=[], source=self.source)

        response = await self.client.call_with_fallback(
            build_triage_prompt(errors), SYSTEM_PROMPT, self.router,
        )
        if not response.success:
            logger.warning("[TRIAGE] AI classification unavailable: %s", response.error)
            return ClassificationResult(ok=False, error=response.error, source=self.source)

        try:
            reply = parse_triage_reply(response.text)
        except (ValueError, ValidationError) as e:
            logger.warning("[TRIAGE] Invalid classification reply from %s: %s", response.provider_name, e)
            return ClassificationResult(ok=False, error=f"Invalid classification reply: {e}", source=self.source)

        if not reply.unique_errors:
            return ClassificationResult(ok=False, error="Classification reply contained no errors", source=self.source)

        bugs = self._to_bugs(reply, errors)
        logger.info(
            "[TRIAGE] %s classified %d error(s) into %d bug(s)",
            response.provider_name, len(errors), len(bugs),
        )
        return ClassificationResult(ok=True, bugs=bugs, source=self.source)

    def _to_bugs(self, reply: AITriageReply, errors: list[DetailedError]) -> list[ProcessedError]:
        covered: set[int] = set()
        bugs: list[ProcessedError] = []
        now = utc_now_iso()

        for item in reply.unique_errors:
            indexes = [i for i in item.original_indexes if 0 <= i < len(errors) and i not in covered]
            covered.update(indexes)
            originals = [errors[i] for i in indexes]
            first = originals[0] if originals else None
            timestamps = [e.timestamp for e in originals] or [now]

            bugs.append(ProcessedError(
                task_name=item.task_name or (first.task_name if first else "unknown"),
                error_kind=item.error_type or (first.error_kind if first else "unknown"),
                severity=item.severity,
                priority=item.severity,
                message=item.message,
                location=item.representative_location or (first.location if first else None),
                first_seen=min(timestamps),
                last_seen=max(timestamps),
                occurrences=len(originals) or item.occurrences,
                category=item.category,
                suggested_fix=item.suggested_fix,
            ))

        # Errors the model dropped are still triaged, deterministically
        missed = [e for i, e in enumerate(errors) if i not in covered]
        if missed and covered:
            logger.info("[TRIAGE] %d error(s) not covered by AI reply, classifying deterministically", len(missed))
            bugs.extend(FallbackClassifier().classify(missed).bugs)
        return bugs
