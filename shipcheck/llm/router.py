"""
LLM Router
==========
Decides which LLM provider classifies the next batch of errors.

Routing Strategy:
    1. Gemini first (primary provider)
    2. On failure (HTTP error, timeout, rate limit, unusable reply) → Groq
    3. On Groq failure → the caller falls back to deterministic classification

Provider Health Tracking:
    - Consecutive failures are counted per provider
    - After PROVIDER_COOLDOWN_THRESHOLD failures in a row the provider is
      skipped for the next PROVIDER_COOLDOWN_SKIP_COUNT selections
    - Providers without an API key are never selected
"""
import logging
from dataclasses import dataclass
from typing import Optional

from shipcheck.core.config import (
    CLASSIFIER_TIMEOUT_SECONDS,
    GEMINI_API_KEY,
    GROQ_API_KEY,
    PROVIDER_COOLDOWN_SKIP_COUNT,
    PROVIDER_COOLDOWN_THRESHOLD,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Provider Configuration
# ---------------------------------------------------------------------------
@dataclass
class ProviderConfig:
    """Configuration for a single LLM provider."""
    name: str
    api_key: str
    base_url: str
    model: str
    max_retries: int = 2
    timeout_seconds: float = CLASSIFIER_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    api_key=GEMINI_API_KEY or "",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    model="gemini-2.0-flash",
)

GROQ_CONFIG = ProviderConfig(
    name="groq",
    api_key=GROQ_API_KEY or "",
    base_url="https://api.groq.com/openai/v1",
    model="llama-3.3-70b-versatile",
)


# ---------------------------------------------------------------------------
# Provider Health Tracker
# ---------------------------------------------------------------------------
@dataclass
class ProviderHealth:
    """Tracks consecutive failures and cooldown for a provider."""
    consecutive_failures: int = 0
    is_healthy: bool = True
    max_failures: int = PROVIDER_COOLDOWN_THRESHOLD
    cooldown_remaining: int = 0

    def record_failure(self) -> None:
        self.consecutive_failures += 1
        if self.consecutive_failures >= self.max_failures:
            self.is_healthy = False
            self.cooldown_remaining = PROVIDER_COOLDOWN_SKIP_COUNT
            logger.warning(
                "Provider entering cooldown after %d failures (skip %d calls)",
                self.consecutive_failures, self.cooldown_remaining,
            )

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def tick_cooldown(self) -> None:
        """Decrement cooldown; re-enable cautiously once it expires."""
        if self.cooldown_remaining > 0:
            self.cooldown_remaining -= 1
            if self.cooldown_remaining <= 0:
                self.is_healthy = True
                # One more failure puts it straight back into cooldown
                self.consecutive_failures = max(1, self.max_failures - 1)
                logger.info("Provider cooldown expired, re-enabled")

    def reset(self) -> None:
        self.consecutive_failures = 0
        self.is_healthy = True
        self.cooldown_remaining = 0


# ---------------------------------------------------------------------------
# LLM Router
# ---------------------------------------------------------------------------
class LLMRouter:
    """
    Ordered provider selection with health tracking.

    Usage:
        router = LLMRouter()
        for provider in router.candidates():
            ...
            router.report_success(provider.name)   # or report_failure
    """

    def __init__(self, providers: Optional[list[ProviderConfig]] = None) -> None:
        self._providers: list[ProviderConfig] = list(providers or [GEMINI_CONFIG, GROQ_CONFIG])
        self._health: dict[str, ProviderHealth] = {p.name: ProviderHealth() for p in self._providers}

    @property
    def has_configured_provider(self) -> bool:
        return any(p.configured for p in self._providers)

    def candidates(self) -> list[ProviderConfig]:
        """
        Providers to try for one request, in priority order.

        Cooldowns tick once per request. Unconfigured and cooling-down
        providers are left out, so the list may be empty.
        """
        for h in self._health.values():
            h.tick_cooldown()

        selected = [
            p for p in self._providers
            if p.configured and self._health[p.name].is_healthy
        ]
        logger.debug("Provider candidates: %s", [p.name for p in selected])
        return selected

    def report_success(self, provider_name: str) -> None:
        health = self._health.get(provider_name)
        if health:
            health.record_success()

    def report_failure(self, provider_name: str) -> None:
        health = self._health.get(provider_name)
        if health:
            health.record_failure()

    def reset(self) -> None:
        for health in self._health.values():
            health.reset()

    def get_health(self, provider_name: str) -> Optional[ProviderHealth]:
        return self._health.get(provider_name)

    @property
    def provider_health_state(self) -> dict[str, dict]:
        """Per-provider health and cooldown, exposed on /health."""
        return {
            name: {
                "configured": next(p.configured for p in self._providers if p.name == name),
                "is_healthy": h.is_healthy,
                "consecutive_failures": h.consecutive_failures,
                "cooldown_remaining": h.cooldown_remaining,
            }
            for name, h in self._health.items()
        }
