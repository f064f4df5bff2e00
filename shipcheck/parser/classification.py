"""
Classification
==============
Maps a DetailedError onto a triage severity tier and a category label.

Severity Tiers:
    high, medium, low

Classification Strategy:
    1. EXPLICIT TABLE — (input severity, task name) lookup
    2. DEFAULT — anything not in the table is low
    3. NEVER dynamic inference or LLM

This table is the deterministic half of triage. The AI-assisted classifier
is instructed with the same rules; when it is unavailable, these rules
alone decide, so the same input always lands in the same tier.
"""
from dataclasses import dataclass

from shipcheck.models.error_report import DetailedError


@dataclass(frozen=True)
class ClassificationRule:
    """Immutable result of classifying one DetailedError."""
    severity: str
    category: str


# ---------------------------------------------------------------------------
# 1. Explicit Severity Table
# ---------------------------------------------------------------------------
# (input severity, task name) → tier
_SEVERITY_TABLE: dict[tuple[str, str], str] = {
    ("error",   "build"):     "high",
    ("error",   "typecheck"): "high",
    ("error",   "test"):      "high",
    ("error",   "website"):   "high",
    ("error",   "lint"):      "medium",
    ("warning", "typecheck"): "medium",
    ("warning", "build"):     "medium",
}

_DEFAULT_TIER = "low"


# ---------------------------------------------------------------------------
# 2. Category Labels
# ---------------------------------------------------------------------------
_CATEGORY_MAP: dict[str, str] = {
    "lint":      "Lint Rule",
    "typecheck": "Type Error",
    "build":     "Build Issue",
    "test":      "Test Failure",
    "website":   "Runtime Error",
}


# ---------------------------------------------------------------------------
# Tier Priority (for sorting)
# ---------------------------------------------------------------------------
TIER_PRIORITY: dict[str, int] = {
    "critical": 4,
    "high":     3,
    "medium":   2,
    "low":      1,
}


def tier_value(tier: str) -> int:
    """Return the sort weight of a tier (higher = more urgent, unknown = 0)."""
    return TIER_PRIORITY.get(tier, 0)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def map_severity_to_tier(severity: str, task_name: str) -> str:
    """
    Deterministic severity tier for an input severity and task name.

    Build, type-check and test errors and runtime/console errors are high;
    static-analysis errors are medium; build and type-check warnings are
    medium; every other warning or stylistic issue is low.
    """
    return _SEVERITY_TABLE.get((severity, task_name), _DEFAULT_TIER)


def category_for(task_name: str) -> str:
    return _CATEGORY_MAP.get(task_name, f"{task_name} issue")


def classify_error(error: DetailedError) -> ClassificationRule:
    """Classify a single DetailedError using the explicit tables."""
    return ClassificationRule(
        severity=map_severity_to_tier(error.severity, error.task_name),
        category=category_for(error.task_name),
    )
