"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    GEMINI_API_KEY              — Primary LLM provider for triage classification (Google Gemini)
    GROQ_API_KEY                — Fallback LLM provider (Groq, OpenAI-compatible)
    REDIS_URL                   — Full Redis URL for the ledger store (takes precedence)
    REDIS_HOST / REDIS_PORT     — Ledger store host/port when REDIS_URL is unset
    REDIS_PASSWORD              — Ledger store password (optional)
    LEDGER_TTL_SECONDS          — Expiry applied on every ledger save (default: 30 days)
    SHIPCHECK_REPORT_URL        — Triage endpoint the CLI posts error collections to
    REPORT_TIMEOUT_SECONDS      — HTTP timeout for the error transmitter (default: 30)
    CLASSIFIER_TIMEOUT_SECONDS  — HTTP timeout for each LLM classification call (default: 15)
    CLASSIFY_BUDGET_SECONDS     — Overall bound on AI classification per submission (default: 20)
    DEFAULT_TASK_TIMEOUT        — Seconds a verification task may run before it is killed (default: 60)
    SHIPCHECK_CHROME_PATH       — Explicit Chrome/Chromium binary for the smoke check

Timeout Philosophy:
    Every external interaction carries its own bound. A task process is
    killed at its deadline; the transmitter and the classifier give up at
    theirs and degrade (no-op / deterministic fallback) instead of hanging.
    CLASSIFY_BUDGET_SECONDS must stay below REPORT_TIMEOUT_SECONDS so the
    service answers before the CLI gives up on the request.
"""
import os
from dotenv import load_dotenv

load_dotenv()

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GROQ_API_KEY = os.getenv("GROQ_API_KEY")

# Ledger store
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD") or None
LEDGER_TTL_SECONDS = int(os.getenv("LEDGER_TTL_SECONDS", 30 * 24 * 60 * 60))

# Error transmitter
SHIPCHECK_REPORT_URL = os.getenv("SHIPCHECK_REPORT_URL", "http://localhost:8000/api/report")
REPORT_TIMEOUT_SECONDS = float(os.getenv("REPORT_TIMEOUT_SECONDS", 30))

# Triage classification
CLASSIFIER_TIMEOUT_SECONDS = float(os.getenv("CLASSIFIER_TIMEOUT_SECONDS", 15))
CLASSIFY_BUDGET_SECONDS = float(os.getenv("CLASSIFY_BUDGET_SECONDS", 20))

# Task execution
DEFAULT_TASK_TIMEOUT = float(os.getenv("DEFAULT_TASK_TIMEOUT", 60))

# Headless browser
SHIPCHECK_CHROME_PATH = os.getenv("SHIPCHECK_CHROME_PATH")

# Provider health cooldown
PROVIDER_COOLDOWN_THRESHOLD = int(os.getenv("PROVIDER_COOLDOWN_THRESHOLD", 3))
PROVIDER_COOLDOWN_SKIP_COUNT = int(os.getenv("PROVIDER_COOLDOWN_SKIP_COUNT", 5))
