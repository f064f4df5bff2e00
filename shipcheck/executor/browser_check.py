"""
Headless Browser Smoke Check
============================
Loads the project's running dev server in one headless Chromium instance
and records runtime issues.

Checks (in order, each runs even if an earlier one failed):
    1. Page load with network-idle wait (10s bound)
    2. Page title present and not the generic "Document"  (warning)
    3. Broken <img> elements: not complete or zero natural width  (error)
    4. Images missing alt text  (warning)
    5. Click the first 3 buttons / links, 100ms settle after each  (warning on failure)

Collected throughout via page listeners:
    - console messages of type "error"
    - uncaught page exceptions
    - failed network requests

Resource model:
    Exactly one browser per check; it is closed in a ``finally`` block on
    every exit path.

Deadline:
    The task timeout bounds the whole check: server detection, launch,
    navigation, every in-page evaluation and every click draw from one
    budget. In-page scripts run through ``wait_for_function`` so a page
    stuck in a busy script times out instead of blocking the run. An
    exhausted budget is recorded as a hard error.

Outcome:
    success = zero hard errors. Warnings never fail the check. Missing
    browser binaries and undetectable dev servers produce an actionable
    message, not a stack trace.
"""
import logging
import os
import re
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from shipcheck.core.config import SHIPCHECK_CHROME_PATH
from shipcheck.executor.tool_probe import npm_script
from shipcheck.models.task_result import TaskResult

logger = logging.getLogger(__name__)

TASK_NAME = "website"

# Dev servers tried in order when no explicit port is configured
COMMON_DEV_URLS: list[str] = [
    "http://localhost:3000",  # Next.js, React
    "http://localhost:5173",  # Vite
    "http://localhost:8080",  # Vue CLI
    "http://localhost:4200",  # Angular
    "http://localhost:5000",
    "http://localhost:8000",
]

_PORT_PATTERN = re.compile(r"--port[=\s]+(\d+)|:(\d+)")

LAUNCH_ARGS: list[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-web-security",
    "--disable-features=VizDisplayCompositor",
]

LAUNCH_TIMEOUT_MS = 30_000
NAVIGATION_TIMEOUT_MS = 10_000
CLICK_TIMEOUT_MS = 2_000
SETTLE_DELAY_MS = 100
MAX_CLICKS = 3
CLICKABLE_SELECTOR = 'button, a[href], [role="button"]'

_BROKEN_IMAGES_JS = """() => Array.from(document.querySelectorAll('img'))
    .filter(img => !img.complete || img.naturalWidth === 0)
    .map(img => img.src || img.getAttribute('src') || 'unknown')"""

_MISSING_ALT_JS = """() => Array.from(document.querySelectorAll('img'))
    .filter(img => !img.alt).length"""

_TITLE_JS = "() => document.title"

NO_SERVER_MESSAGE = (
    "Could not detect development server URL. "
    "Make sure your dev server is running."
)
INSTALL_BROWSER_HINT = (
    "Chromium is not available for the smoke check.\n\n"
    "Install it with: playwright install chromium\n"
    "or point SHIPCHECK_CHROME_PATH at a Chrome/Chromium binary."
)

# Per-platform system Chrome locations
_CHROME_PATHS: dict[str, list[str]] = {
    "darwin": [
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
        "/Applications/Google Chrome Canary.app/Contents/MacOS/Google Chrome Canary",
    ],
    "win32": [
        r"C:\Program Files\Google\Chrome\Application\chrome.exe",
        r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
        os.path.expandvars(r"%LOCALAPPDATA%\Google\Chrome\Application\chrome.exe"),
        r"C:\Program Files\Chromium\Application\chrome.exe",
    ],
    "linux": [
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/usr/bin/chromium-browser",
        "/usr/bin/chromium",
        "/snap/bin/chromium",
    ],
}


# ---------------------------------------------------------------------------
# Discovery helpers
# ---------------------------------------------------------------------------
def find_chrome(platform: str = sys.platform) -> Optional[str]:
    """
    Locate a system Chrome/Chromium binary.

    Returns None when nothing is found, in which case Playwright's bundled
    Chromium is used.
    """
    if SHIPCHECK_CHROME_PATH:
        return SHIPCHECK_CHROME_PATH
    key = "linux" if platform.startswith("linux") else platform
    for path in _CHROME_PATHS.get(key, _CHROME_PATHS["linux"]):
        if os.path.isfile(path):
            return path
    return None


def url_from_start_script(project_root: str) -> Optional[str]:
    """Extract an explicit port from the ``start`` or ``dev`` npm script."""
    script = npm_script(project_root, "start") or npm_script(project_root, "dev")
    if not script:
        return None
    match = _PORT_PATTERN.search(script)
    if not match:
        return None
    port = match.group(1) or match.group(2)
    return f"http://localhost:{port}"


class Deadline:
    """Remaining share of one overall time budget; ``None`` means unbounded."""

    def __init__(self, seconds: Optional[float] = None) -> None:
        self.seconds = seconds
        self._end = time.monotonic() + seconds if seconds else None

    @property
    def expired(self) -> bool:
        return self._end is not None and time.monotonic() >= self._end

    def remaining_s(self, cap: float) -> float:
        if self._end is None:
            return cap
        return max(0.0, min(cap, self._end - time.monotonic()))

    def remaining_ms(self, cap_ms: float) -> float:
        # Playwright treats 0 as "no timeout", so never hand it out
        return max(1.0, self.remaining_s(cap_ms / 1000) * 1000)


def detect_server_url(
    project_root: str,
    candidates: Optional[list[str]] = None,
    timeout: float = 2.0,
    deadline: Optional[Deadline] = None,
) -> Optional[str]:
    """
    Find the URL of a locally running dev server.

    An explicit port in the start script wins. Otherwise each common dev
    URL is probed with a HEAD request and the first successful one is used.
    Probing stops once ``deadline`` has expired.
    """
    explicit = url_from_start_script(project_root)
    if explicit:
        return explicit

    deadline = deadline or Deadline()
    for url in candidates if candidates is not None else COMMON_DEV_URLS:
        if deadline.expired:
            logger.debug("[SMOKE] Server probing stopped at deadline")
            break
        try:
            response = httpx.head(url, timeout=deadline.remaining_s(timeout), follow_redirects=True)
        except httpx.HTTPError:
            continue
        if response.is_success:
            return url
    return None


# ---------------------------------------------------------------------------
# Smoke check
# ---------------------------------------------------------------------------
@dataclass
class SmokeFindings:
    """Issues collected during one smoke check."""
    url: str
    title: str = ""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    broken_images: list[str] = field(default_factory=list)
    missing_alt: int = 0

    def summary(self) -> str:
        lines = [f"✓ Page loaded: {self.url}"]
        if self.title:
            lines.append(f'✓ Page title: "{self.title}"')
        if not self.broken_images:
            lines.append("✓ All images loaded")
        if self.warnings:
            lines.append(f"⚠ {len(self.warnings)} warnings")
            lines.extend(f"  Warning: {w}" for w in self.warnings)
        if not self.errors:
            lines.append("✓ No JavaScript errors detected")
        return "\n".join(lines)


class WebsiteSmokeCheck:
    """
    Runs the smoke check against one URL.

    ``playwright_factory`` defaults to ``sync_playwright`` and is injectable
    so the page interaction can be exercised without a real browser.
    """

    def __init__(
        self,
        project_root: str,
        url: Optional[str] = None,
        playwright_factory: Callable = sync_playwright,
        chrome_path: Optional[str] = None,
        navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
    ) -> None:
        self.project_root = project_root
        self.url = url
        self._playwright_factory = playwright_factory
        self._chrome_path = chrome_path
        self.navigation_timeout_ms = navigation_timeout_ms

    def run(self, timeout: Optional[float] = None) -> TaskResult:
        start = time.monotonic()
        deadline = Deadline(timeout)

        url = self.url or detect_server_url(self.project_root, deadline=deadline)
        if not url:
            logger.warning("[SMOKE] No dev server detected in %s", self.project_root)
            return TaskResult.failed(TASK_NAME, NO_SERVER_MESSAGE, duration_ms=_elapsed_ms(start))

        findings = SmokeFindings(url=url)
        chrome_path = self._chrome_path or find_chrome()
        logger.info("[SMOKE] Checking %s (browser=%s)", url, chrome_path or "bundled chromium")

        try:
            with self._playwright_factory() as pw:
                browser = pw.chromium.launch(
                    headless=True,
                    args=LAUNCH_ARGS,
                    executable_path=chrome_path,
                    timeout=deadline.remaining_ms(LAUNCH_TIMEOUT_MS),
                )
                try:
                    self._inspect(browser, findings, deadline)
                finally:
                    browser.close()
        except PlaywrightError as e:
            message = e.message or str(e)
            if "executable" in message.lower():
                error = f"{INSTALL_BROWSER_HINT}\n\n{message.splitlines()[0]}"
            else:
                error = f"Website test failed: {message}"
            logger.warning("[SMOKE] %s", error.splitlines()[0])
            return TaskResult.failed(TASK_NAME, error, duration_ms=_elapsed_ms(start))

        duration = _elapsed_ms(start)
        logger.info(
            "[SMOKE] Finished | errors=%d | warnings=%d | time=%dms",
            len(findings.errors), len(findings.warnings), duration,
        )

        if findings.errors:
            issues = findings.errors + [f"Warning: {w}" for w in findings.warnings]
            return TaskResult(
                name=TASK_NAME,
                success=False,
                output=findings.summary(),
                error="\n".join(issues),
                duration_ms=duration,
            )
        return TaskResult(name=TASK_NAME, success=True, output=findings.summary(), duration_ms=duration)

    # -----------------------------------------------------------------------
    # Page inspection
    # -----------------------------------------------------------------------
    def _inspect(self, browser, findings: SmokeFindings, deadline: Deadline) -> None:
        page = browser.new_page()
        page.set_default_timeout(deadline.remaining_ms(self.navigation_timeout_ms))

        def on_console(msg) -> None:
            if msg.type == "error":
                findings.errors.append(f"Console error: {msg.text}")

        page.on("console", on_console)
        page.on("pageerror", lambda exc: findings.errors.append(f"Page error: {exc}"))
        page.on(
            "requestfailed",
            lambda request: findings.errors.append(
                f"Failed request: {request.url} - {request.failure}"
            ),
        )

        def timed_out(step: str) -> None:
            budget = f" after {deadline.seconds:g}s" if deadline.seconds else ""
            findings.errors.append(f"Website check timed out{budget} during {step}")

        # 1. Page load
        try:
            page.goto(
                findings.url,
                wait_until="networkidle",
                timeout=deadline.remaining_ms(self.navigation_timeout_ms),
            )
        except PlaywrightError as e:
            findings.errors.append(f"Failed to load {findings.url}: {e.message}")

        if deadline.expired:
            timed_out("page load")
            return

        # 2–4. Static page checks
        step = "title check"
        try:
            findings.title = _evaluate(page, _TITLE_JS, deadline) or ""
            if not findings.title or findings.title == "Document":
                findings.warnings.append("Page has no title or generic title")

            step = "image check"
            findings.broken_images = list(_evaluate(page, _BROKEN_IMAGES_JS, deadline) or [])
            if findings.broken_images:
                findings.errors.append(f"Broken images found: {', '.join(findings.broken_images)}")

            findings.missing_alt = int(_evaluate(page, _MISSING_ALT_JS, deadline) or 0)
            if findings.missing_alt > 0:
                findings.warnings.append(f"{findings.missing_alt} images missing alt text")
        except PlaywrightTimeoutError:
            timed_out(step)
            return
        except PlaywrightError as e:
            findings.errors.append(f"Could not inspect page: {e.message}")

        # 5. Interaction
        try:
            clickables = page.query_selector_all(CLICKABLE_SELECTOR)
        except PlaywrightError:
            findings.warnings.append("Could not perform interaction tests")
            return

        for index, element in enumerate(clickables[:MAX_CLICKS], 1):
            if deadline.expired:
                timed_out("interaction tests")
                return
            try:
                element.click(timeout=deadline.remaining_ms(CLICK_TIMEOUT_MS))
                page.wait_for_timeout(SETTLE_DELAY_MS)
            except PlaywrightError as e:
                logger.debug("[SMOKE] Click on element %d failed: %s", index, e.message)
                findings.warnings.append(f"Click test failed on element {index}")


def _evaluate(page, script: str, deadline: Deadline):
    """
    Run ``script`` in the page within what is left of ``deadline``.

    ``page.evaluate`` takes no timeout, so the script is wrapped for
    ``wait_for_function``, whose timeout is enforced outside the page.
    """
    handle = page.wait_for_function(
        f"() => ({{ value: ({script})() }})",
        timeout=deadline.remaining_ms(NAVIGATION_TIMEOUT_MS),
    )
    try:
        return handle.json_value()["value"]
    finally:
        handle.dispose()


def _elapsed_ms(start: float) -> int:
    return int(round((time.monotonic() - start) * 1000))


def run_website_check(project_root: str, timeout: Optional[float] = None) -> TaskResult:
    """Convenience entry point used by the website task."""
    return WebsiteSmokeCheck(project_root).run(timeout=timeout)
