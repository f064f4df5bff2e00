"""
Unit Tests — Next-Suggestion Selector
======================================
"""
from shipcheck.models.ledger import RepositoryLedger
from shipcheck.services.suggestion import (
    COMPLETED_MESSAGE,
    NOT_FOUND_MESSAGE,
    select_next,
    suggestion_response,
)


def _ledger(bugs=(), tasks=()):
    return RepositoryLedger.model_validate({"bugs": list(bugs), "tasks": list(tasks)})


def _b(id_, severity, status="open", **extra):
    return {"id": id_, "severity": severity, "status": status, "message": f"bug {id_}", **extra}


def _t(id_, priority, status="todo", **extra):
    return {"id": id_, "priority": priority, "status": status, "title": f"task {id_}", **extra}


class TestSelectNext:

    def test_highest_priority_wins(self):
        ledger = _ledger(bugs=[_b("#1", "low"), _b("#2", "high")], tasks=[_t("T-1", "medium")])
        assert select_next(ledger).item["id"] == "#2"

    def test_bug_before_task_on_tie(self):
        ledger = _ledger(bugs=[_b("#9", "high")], tasks=[_t("T-1", "high")])
        chosen = select_next(ledger)
        assert chosen.kind == "bug"

    def test_lowest_numeric_id_on_tie(self):
        ledger = _ledger(bugs=[_b("#12", "medium"), _b("#3", "medium"), _b("#10", "medium")])
        assert select_next(ledger).item["id"] == "#3"

    def test_critical_task_beats_high_bug(self):
        ledger = _ledger(bugs=[_b("#1", "high")], tasks=[_t("T-5", "critical")])
        assert select_next(ledger).item["id"] == "T-5"

    def test_closed_and_checked_skipped(self):
        ledger = _ledger(
            bugs=[_b("#1", "high", status="done"), _b("#2", "high", checked=True), _b("#3", "low")],
            tasks=[_t("T-1", "critical", status="in-progress")],
        )
        assert select_next(ledger).item["id"] == "#3"


class TestSuggestionResponse:

    def test_not_found(self):
        assert suggestion_response(None) == {"suggestion": None, "message": NOT_FOUND_MESSAGE}

    def test_completed(self):
        body = suggestion_response(_ledger(bugs=[_b("#1", "high", status="done")]))
        assert body == {"suggestion": None, "message": COMPLETED_MESSAGE, "type": "completed"}

    def test_bug_suggestion(self):
        ledger = _ledger(bugs=[_b("#4", "high", suggestedFix="Add the import", assignee="sam")])
        body = suggestion_response(ledger)
        assert body["suggestion"] == {
            "id": "#4",
            "title": "bug #4",
            "type": "bug",
            "priority": "high",
            "assignee": "sam",
            "description": "Add the import",
        }
        assert body["message"] == "Next suggested bug: bug #4"

    def test_task_suggestion(self):
        body = suggestion_response(_ledger(tasks=[_t("T-2", "medium", description="Write docs")]))
        assert body["suggestion"]["type"] == "task"
        assert body["suggestion"]["title"] == "task T-2"
        assert body["suggestion"]["description"] == "Write docs"
