"""
LLM Client
==========
Asynchronous client wrapper for the triage classification providers.

Providers:
    - Primary: Google Gemini (REST ``generateContent``)
    - Fallback: Groq (OpenAI-compatible ``chat/completions``)

Both are asked for a JSON-only reply. This layer returns the raw reply
text; interpreting it is the classifier's job.

Failure Handling:
    - Each provider gets ``max_retries`` attempts
    - HTTP 429 moves on to the next provider immediately
    - Timeouts, HTTP errors and empty replies count as failed attempts
    - Nothing is raised: the outcome is an LLMResponse with success=False
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from shipcheck.llm.router import LLMRouter, ProviderConfig

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Raw reply from an LLM provider."""
    text: str
    provider_name: str
    success: bool = True
    error: str = ""


class LLMClient:
    """
    Async HTTP client for calling LLM providers.

    Usage:
        client = LLMClient()
        response = await client.call_with_fallback(prompt, system, router)
        await client.close()
    """

    def __init__(self, http: Optional[httpx.AsyncClient] = None) -> None:
        self._http = http

    async def _get_http(self, timeout: float) -> httpx.AsyncClient:
        """Lazy-initialise the HTTP client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def call(
        self,
        user_prompt: str,
        system_prompt: str,
        provider: ProviderConfig,
    ) -> LLMResponse:
        """
        Send a prompt to one provider, retrying up to ``max_retries`` times.

        Parameters
        ----------
        user_prompt : str
            Prompt carrying the errors to classify.
        system_prompt : str
            Classification rules.
        provider : ProviderConfig
            Provider configuration (Gemini or Groq).

        Returns
        -------
        LLMResponse
            The first non-empty reply, or a failure response.
        """
        for attempt in range(1, provider.max_retries + 1):
            try:
                if provider.name == "gemini":
                    raw = await self._call_gemini(user_prompt, system_prompt, provider)
                else:
                    raw = await self._call_openai_compatible(user_prompt, system_prompt, provider)

                if raw and raw.strip():
                    return LLMResponse(text=raw, provider_name=provider.name)

                logger.warning("Provider %s attempt %d: empty response", provider.name, attempt)

            except httpx.TimeoutException:
                logger.warning("Provider %s attempt %d: timeout", provider.name, attempt)
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                logger.warning("Provider %s attempt %d: HTTP %d", provider.name, attempt, status)
                if status == 429:
                    break
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("Provider %s attempt %d: %s", provider.name, attempt, e)

        return LLMResponse(
            text="",
            provider_name=provider.name,
            success=False,
            error=f"All {provider.max_retries} retries exhausted for {provider.name}",
        )

    async def _call_gemini(
        self,
        user_prompt: str,
        system_prompt: str,
        provider: ProviderConfig,
    ) -> str:
        http = await self._get_http(provider.timeout_seconds)
        url = f"{provider.base_url}/models/{provider.model}:generateContent"
        payload = {
            "system_instruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"parts": [{"text": user_prompt}]}],
            "generationConfig": {
                "temperature": 0.1,
                "maxOutputTokens": 8192,
                "responseMimeType": "application/json",
            },
        }
        resp = await http.post(
            url,
            json=payload,
            params={"key": provider.api_key},
            timeout=provider.timeout_seconds,
        )
        resp.raise_for_status()
        data = resp.json()

        try:
            candidates = data.get("candidates", [])
            if candidates:
                parts = candidates[0].get("content", {}).get("parts", [])
                if parts:
                    return parts[0].get("text", "")
        except (IndexError, KeyError, TypeError, AttributeError):
            pass
        return ""

    async def _call_openai_compatible(
        self,
        user_prompt: str,
        system_prompt: str,
        provider: ProviderConfig,
    ) -> str:
        http = await self._get_http(provider.timeout_seconds)
        url = f"{provider.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {provider.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": provider.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.1,
            "max_tokens": 8192,
            "response_format": {"type": "json_object"},
        }
        resp = await http.post(url, json=payload, headers=headers, timeout=provider.timeout_seconds)
        resp.raise_for_status()
        data = resp.json()

        try:
            choices = data.get("choices", [])
            if choices:
                return choices[0].get("message", {}).get("content", "") or ""
        except (IndexError, KeyError, TypeError, AttributeError):
            pass
        return ""

    async def call_with_fallback(
        self,
        user_prompt: str,
        system_prompt: str,
        router: LLMRouter,
    ) -> LLMResponse:
        """
        Try each candidate provider in order until one replies.

        Returns
        -------
        LLMResponse
            Reply from whichever provider succeeded, or a failure response
            naming every provider that was tried.
        """
        tried: list[str] = []
        for provider in router.candidates():
            tried.append(provider.name)
            response = await self.call(user_prompt, system_prompt, provider)
            if response.success:
                router.report_success(provider.name)
                return response
            router.report_failure(provider.name)

        error = "All providers failed" if tried else "No LLM provider configured"
        return LLMResponse(
            text="",
            provider_name=",".join(tried),
            success=False,
            error=error,
        )
