"""
Unit Tests — Triage Classification
===================================
Deterministic fallback, AI reply handling, and the LLM provider chain.
All LLM HTTP traffic goes through httpx.MockTransport.
"""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import httpx

from shipcheck.llm.client import LLMClient, LLMResponse
from shipcheck.llm.router import LLMRouter, ProviderConfig, ProviderHealth
from shipcheck.models.error_report import DetailedError, ErrorLocation
from shipcheck.parser.classification import classify_error
from shipcheck.services.classifier import (
    AIClassifier,
    FallbackClassifier,
    parse_triage_reply,
    strip_code_fences,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _lint(message="Missing semicolon", file="src/a.ts", line=10, ts="2026-01-01T00:00:00.000Z"):
    return DetailedError(
        task_name="lint", error_kind="lint", severity="error", message=message,
        location=ErrorLocation(file=file, line=line, column=5), timestamp=ts,
    )


def _typecheck():
    return DetailedError(
        task_name="typecheck", error_kind="typecheck", severity="error", message="TS2322: bad",
        location=ErrorLocation(file="src/b.ts", line=3, column=1),
    )


GEMINI = ProviderConfig(name="gemini", api_key="g-key", base_url="http://gemini.test", model="g", max_retries=2)
GROQ = ProviderConfig(name="groq", api_key="q-key", base_url="http://groq.test", model="q", max_retries=1)


# ---------------------------------------------------------------------------
# 1. Deterministic fallback
# ---------------------------------------------------------------------------
class TestFallbackClassifier:

    def test_dedup_by_message_task_file_line(self):
        errors = [
            _lint(ts="2026-01-01T00:00:00.000Z"),
            _lint(ts="2026-01-01T00:00:05.000Z"),
            _typecheck(),
        ]
        result = FallbackClassifier().classify(errors)
        assert result.ok is True
        assert result.source == "fallback"
        assert len(result.bugs) == 2
        lint = result.bugs[0]
        assert lint.occurrences == 2
        assert lint.severity == "medium"
        assert lint.priority == "medium"
        assert lint.first_seen == "2026-01-01T00:00:00.000Z"
        assert lint.last_seen == "2026-01-01T00:00:05.000Z"
        assert result.bugs[1].severity == "high"
        assert result.bugs[1].category == "Type Error"

    def test_different_file_is_different_bug(self):
        result = FallbackClassifier().classify([_lint(file="src/a.ts"), _lint(file="src/c.ts")])
        assert len(result.bugs) == 2

    def test_different_line_is_different_bug(self):
        result = FallbackClassifier().classify([_lint(line=20), _lint(line=10), _lint(line=20)])
        assert [(b.location.line, b.occurrences) for b in result.bugs] == [(20, 2), (10, 1)]

    def test_uses_rule_table(self):
        errors = [_lint(), _typecheck()]
        bugs = FallbackClassifier().classify(errors).bugs
        for error, bug in zip(errors, bugs):
            rule = classify_error(error)
            assert (bug.severity, bug.priority, bug.category) == (rule.severity, rule.severity, rule.category)

    def test_deterministic(self):
        errors = [_lint(), _lint(message="Other"), _typecheck()]
        a = [b.model_dump() for b in FallbackClassifier().classify(errors).bugs]
        b = [b.model_dump() for b in FallbackClassifier().classify(errors).bugs]
        assert a == b


# ---------------------------------------------------------------------------
# 2. AI reply parsing
# ---------------------------------------------------------------------------
REPLY = {
    "uniqueErrors": [
        {
            "originalIndexes": [0, 1],
            "taskName": "lint",
            "errorType": "lint",
            "severity": "medium",
            "message": "Missing semicolon",
            "priority": "medium",
            "category": "Lint Rule",
            "suggestedFix": "Add the semicolon",
            "occurrences": 2,
            "representativeLocation": {"file": "src/a.ts", "line": 10},
        },
    ],
    "summary": {"originalCount": 3, "uniqueCount": 1},
}


def _ai(text=None, success=True):
    client = MagicMock()
    client.call_with_fallback = AsyncMock(return_value=LLMResponse(
        text=text if text is not None else json.dumps(REPLY),
        provider_name="gemini",
        success=success,
        error="" if success else "All providers failed",
    ))
    return AIClassifier(client=client, router=LLMRouter(providers=[GEMINI]))


class TestAIClassifier:

    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_parse_reply(self):
        reply = parse_triage_reply("```json\n" + json.dumps(REPLY) + "\n```")
        assert reply.unique_errors[0].original_indexes == [0, 1]
        assert reply.unique_errors[0].suggested_fix == "Add the semicolon"

    def test_reply_mapped_to_bugs(self):
        errors = [_lint(), _lint(), _typecheck()]
        result = _run(_ai().classify(errors))
        assert result.ok is True
        assert result.source == "ai"
        lint = result.bugs[0]
        assert lint.occurrences == 2
        assert lint.suggested_fix == "Add the semicolon"
        assert lint.location.file == "src/a.ts"
        # index 2 was not covered by the reply and is triaged deterministically
        assert len(result.bugs) == 2
        assert result.bugs[1].task_name == "typecheck"
        assert result.bugs[1].severity == "high"

    def test_invalid_json_is_failure(self):
        result = _run(_ai(text="I think these are lint errors").classify([_lint()]))
        assert result.ok is False
        assert "Invalid classification reply" in result.error

    def test_invalid_severity_is_failure(self):
        bad = {"uniqueErrors": [{"severity": "urgent", "message": "x"}]}
        result = _run(_ai(text=json.dumps(bad)).classify([_lint()]))
        assert result.ok is False

    def test_empty_reply_is_failure(self):
        result = _run(_ai(text=json.dumps({"uniqueErrors": []})).classify([_lint()]))
        assert result.ok is False

    def test_provider_failure_is_failure(self):
        result = _run(_ai(success=False).classify([_lint()]))
        assert result.ok is False
        assert result.error == "All providers failed"

    def test_available_requires_key(self):
        unconfigured = ProviderConfig(name="gemini", api_key="", base_url="x", model="m")
        assert AIClassifier(client=MagicMock(), router=LLMRouter(providers=[unconfigured])).available is False


# ---------------------------------------------------------------------------
# 3. Router health
# ---------------------------------------------------------------------------
class TestRouter:

    def test_candidates_in_order(self):
        router = LLMRouter(providers=[GEMINI, GROQ])
        assert [p.name for p in router.candidates()] == ["gemini", "groq"]

    def test_cooldown_after_repeated_failures(self):
        router = LLMRouter(providers=[GEMINI, GROQ])
        health = router.get_health("gemini")
        for _ in range(health.max_failures):
            router.report_failure("gemini")
        assert health.is_healthy is False
        assert [p.name for p in router.candidates()] == ["groq"]

    def test_cooldown_expires(self):
        health = ProviderHealth(max_failures=1)
        health.record_failure()
        assert health.is_healthy is False
        for _ in range(health.cooldown_remaining):
            health.tick_cooldown()
        assert health.is_healthy is True


# ---------------------------------------------------------------------------
# 4. Client fallback chain
# ---------------------------------------------------------------------------
class TestLLMClient:

    def test_gemini_then_groq(self):
        calls = []

        def handler(request):
            calls.append(request.url.host)
            if request.url.host == "gemini.test":
                return httpx.Response(500, json={"error": "down"})
            return httpx.Response(200, json={"choices": [{"message": {"content": '{"uniqueErrors": []}'}}]})

        async def go():
            client = LLMClient(http=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
            router = LLMRouter(providers=[GEMINI, GROQ])
            try:
                return await client.call_with_fallback("prompt", "system", router), router
            finally:
                await client.close()

        response, router = _run(go())
        assert response.success is True
        assert response.provider_name == "groq"
        assert calls == ["gemini.test", "gemini.test", "groq.test"]
        assert router.get_health("gemini").consecutive_failures == 1

    def test_rate_limit_skips_retries(self):
        calls = []

        def handler(request):
            calls.append(request.url.host)
            return httpx.Response(429)

        async def go():
            client = LLMClient(http=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
            try:
                return await client.call("p", "s", GEMINI)
            finally:
                await client.close()

        response = _run(go())
        assert response.success is False
        assert calls == ["gemini.test"]

    def test_gemini_reply_text(self):
        def handler(request):
            assert request.url.params["key"] == "g-key"
            body = json.loads(request.content)
            assert body["generationConfig"]["responseMimeType"] == "application/json"
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "{}"}]}}]})

        async def go():
            client = LLMClient(http=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
            try:
                return await client.call("p", "s", GEMINI)
            finally:
                await client.close()

        response = _run(go())
        assert response.success is True
        assert response.text == "{}"

    def test_no_configured_provider(self):
        unconfigured = ProviderConfig(name="gemini", api_key="", base_url="x", model="m")
        response = _run(LLMClient().call_with_fallback("p", "s", LLMRouter(providers=[unconfigured])))
        assert response.success is False
        assert response.error == "No LLM provider configured"
