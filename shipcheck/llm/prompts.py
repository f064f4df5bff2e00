"""
LLM Prompts
===========
System and user prompts for AI-assisted triage classification.

Prompt Design Rules:
    - Collapse near-duplicate errors into one entry, listing the indexes
      of every input error it represents
    - Severity tiers follow the same table as the deterministic fallback
    - JSON only; no markdown, no commentary
    - Raw tool output is never sent, only the structured fields
"""
import json

from shipcheck.models.error_report import DetailedError

SYSTEM_PROMPT = (
    "You are an expert code analysis assistant that triages build and test errors.\n"
    "\n"
    "TASK:\n"
    "1. Remove duplicate errors (same or near-identical messages from the same task).\n"
    '2. Assign a severity of "low", "medium" or "high":\n'
    "   - HIGH: build failures, type errors, failing tests, runtime/browser errors\n"
    "   - MEDIUM: lint errors, build and type-check warnings, deprecated usage\n"
    "   - LOW: style warnings, minor lint warnings, documentation warnings\n"
    '3. Categorise each error (e.g. "Type Error", "Lint Rule", "Build Issue", '
    '"Test Failure", "Runtime Error").\n'
    "4. Suggest a short, concrete fix where possible.\n"
    "\n"
    "RESPONSE FORMAT: respond with ONLY a JSON object of this shape:\n"
    "{\n"
    '  "uniqueErrors": [\n'
    "    {\n"
    '      "originalIndexes": [0, 5],\n'
    '      "taskName": "lint",\n'
    '      "errorType": "lint",\n'
    '      "severity": "medium",\n'
    '      "message": "Representative error message",\n'
    '      "priority": "medium",\n'
    '      "category": "Lint Rule",\n'
    '      "suggestedFix": "Add the missing semicolon",\n'
    '      "occurrences": 2,\n'
    '      "representativeLocation": {"file": "src/a.ts", "line": 10, "column": 5}\n'
    "    }\n"
    "  ],\n"
    '  "summary": {"originalCount": 0, "uniqueCount": 0, '
    '"highPriority": 0, "mediumPriority": 0, "lowPriority": 0}\n'
    "}\n"
    "\n"
    "Every input index must appear in exactly one originalIndexes list. "
    "No other text. No markdown code fences."
)


def build_triage_prompt(errors: list[DetailedError]) -> str:
    """
    Build the user prompt listing the errors to classify.

    Parameters
    ----------
    errors : list[DetailedError]
        Errors in submission order; their position is the index the model
        refers back to in ``originalIndexes``.

    Returns
    -------
    str
        Formatted prompt string.
    """
    summary = [
        {
            "index": i,
            "taskName": e.task_name,
            "errorType": e.error_kind,
            "severity": e.severity,
            "message": e.message,
            "file": e.file,
            "line": e.line,
        }
        for i, e in enumerate(errors)
    ]
    return (
        f"I have a list of {len(errors)} code errors and warnings that need to be processed.\n"
        "\n"
        "ERRORS TO PROCESS:\n"
        f"{json.dumps(summary, indent=2)}\n"
    )
