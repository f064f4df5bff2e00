"""
Unit Tests — Headless Browser Smoke Check
==========================================
The Playwright entry point is replaced with MagicMocks, so no browser
binary or dev server is needed.
"""
import json
from unittest.mock import MagicMock, PropertyMock, patch

import httpx
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from shipcheck.executor.browser_check import (
    LAUNCH_ARGS,
    Deadline,
    NO_SERVER_MESSAGE,
    WebsiteSmokeCheck,
    detect_server_url,
    find_chrome,
    url_from_start_script,
)

URL = "http://localhost:3000"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _handle(value):
    handle = MagicMock()
    handle.json_value.return_value = {"value": value}
    return handle


def _fake_playwright(title="My App", broken=None, missing_alt=0, clickables=3):
    """Return (factory, browser, page, handlers) wired like sync_playwright()."""
    factory = MagicMock()
    pw = factory.return_value.__enter__.return_value
    browser = pw.chromium.launch.return_value
    page = browser.new_page.return_value

    handlers = {}
    page.on.side_effect = lambda event, handler: handlers.__setitem__(event, handler)
    page.wait_for_function.side_effect = [_handle(title), _handle(broken or []), _handle(missing_alt)]
    page.query_selector_all.return_value = [MagicMock() for _ in range(clickables)]
    return factory, browser, page, handlers


def _check(factory, **kwargs):
    return WebsiteSmokeCheck("/project", url=URL, playwright_factory=factory,
                             chrome_path="/usr/bin/chromium", **kwargs)


# ---------------------------------------------------------------------------
# 1. Page checks
# ---------------------------------------------------------------------------
class TestSmokeCheck:

    def test_clean_page_passes(self):
        factory, browser, page, _ = _fake_playwright(clickables=5)
        result = _check(factory).run()

        assert result.success is True
        assert result.name == "website"
        assert "Page loaded" in result.output
        launch_kwargs = factory.return_value.__enter__.return_value.chromium.launch.call_args.kwargs
        assert launch_kwargs["headless"] is True
        assert launch_kwargs["args"] == LAUNCH_ARGS
        page.goto.assert_called_once_with(URL, wait_until="networkidle", timeout=10_000)
        clicked = [el for el in page.query_selector_all.return_value if el.click.called]
        assert len(clicked) == 3
        page.wait_for_timeout.assert_called_with(100)
        browser.close.assert_called_once()

    def test_console_error_fails(self):
        factory, browser, page, handlers = _fake_playwright()

        def emit_console(*args, **kwargs):
            handlers["console"](MagicMock(type="error", text="Uncaught ReferenceError: x"))
            handlers["console"](MagicMock(type="log", text="hello"))

        page.goto.side_effect = emit_console
        result = _check(factory).run()

        assert result.success is False
        assert "Console error: Uncaught ReferenceError: x" in result.error
        assert "hello" not in result.error
        browser.close.assert_called_once()

    def test_page_error_and_failed_request(self):
        factory, _, page, handlers = _fake_playwright()

        def emit(*args, **kwargs):
            handlers["pageerror"]("TypeError: boom")
            handlers["requestfailed"](MagicMock(url="http://localhost:3000/api", failure="net::ERR_FAILED"))

        page.goto.side_effect = emit
        result = _check(factory).run()
        assert "Page error: TypeError: boom" in result.error
        assert "Failed request: http://localhost:3000/api - net::ERR_FAILED" in result.error

    def test_navigation_failure_is_recorded_not_fatal(self):
        factory, browser, page, _ = _fake_playwright()
        page.goto.side_effect = PlaywrightError("Timeout 10000ms exceeded")
        result = _check(factory).run()

        assert result.success is False
        assert "Failed to load http://localhost:3000" in result.error
        assert page.wait_for_function.call_count == 3
        browser.close.assert_called_once()

    def test_broken_images_are_errors(self):
        factory, _, _, _ = _fake_playwright(broken=["http://localhost:3000/logo.png"])
        result = _check(factory).run()
        assert result.success is False
        assert "Broken images found: http://localhost:3000/logo.png" in result.error

    def test_missing_alt_and_generic_title_are_warnings(self):
        factory, _, _, _ = _fake_playwright(title="Document", missing_alt=2)
        result = _check(factory).run()
        assert result.success is True
        assert "2 images missing alt text" in result.output
        assert "Page has no title or generic title" in result.output

    def test_click_failure_is_warning(self):
        factory, _, page, _ = _fake_playwright(clickables=1)
        page.query_selector_all.return_value[0].click.side_effect = PlaywrightError("not visible")
        result = _check(factory).run()
        assert result.success is True
        assert "Click test failed on element 1" in result.output


# ---------------------------------------------------------------------------
# 2. Actionable failures
# ---------------------------------------------------------------------------
class TestSmokeFailures:

    def test_missing_browser_binary(self):
        factory = MagicMock()
        pw = factory.return_value.__enter__.return_value
        pw.chromium.launch.side_effect = PlaywrightError(
            "Executable doesn't exist at /ms-playwright/chromium/chrome\nlong banner"
        )
        result = _check(factory).run()
        assert result.success is False
        assert "playwright install chromium" in result.error
        assert "Traceback" not in result.error

    def test_browser_closed_when_page_creation_fails(self):
        factory, browser, _, _ = _fake_playwright()
        browser.new_page.side_effect = PlaywrightError("Target closed")
        result = _check(factory).run()
        assert result.success is False
        assert "Website test failed: Target closed" in result.error
        browser.close.assert_called_once()

    def test_hung_page_times_out_as_failure(self):
        factory, browser, page, _ = _fake_playwright()
        page.wait_for_function.side_effect = [
            _handle("My App"),
            PlaywrightTimeoutError("Timeout 4000ms exceeded"),
        ]
        result = _check(factory).run(timeout=5)

        assert result.success is False
        assert "Website check timed out after 5s during image check" in result.error
        page.query_selector_all.assert_not_called()
        browser.close.assert_called_once()

    def test_steps_bounded_by_task_timeout(self):
        factory, _, page, _ = _fake_playwright(clickables=1)
        _check(factory).run(timeout=3)

        launch_timeout = factory.return_value.__enter__.return_value.chromium.launch.call_args.kwargs["timeout"]
        assert 0 < launch_timeout <= 3000
        assert 0 < page.goto.call_args.kwargs["timeout"] <= 3000
        assert 0 < page.set_default_timeout.call_args.args[0] <= 3000
        for call in page.wait_for_function.call_args_list:
            assert 0 < call.kwargs["timeout"] <= 3000

    def test_expired_budget_stops_after_navigation(self):
        factory, _, page, _ = _fake_playwright()
        with patch.object(Deadline, "expired", new_callable=PropertyMock, return_value=True):
            result = _check(factory).run(timeout=1)
        assert "timed out after 1s during page load" in result.error
        page.wait_for_function.assert_not_called()

    def test_no_dev_server(self):
        factory = MagicMock()
        with patch("shipcheck.executor.browser_check.detect_server_url", return_value=None):
            result = WebsiteSmokeCheck("/project", playwright_factory=factory).run()
        assert result.success is False
        assert result.error == NO_SERVER_MESSAGE
        factory.assert_not_called()


# ---------------------------------------------------------------------------
# 3. Discovery
# ---------------------------------------------------------------------------
class TestDiscovery:

    def test_port_from_start_script(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"scripts": {"dev": "vite --port 4000"}}))
        assert url_from_start_script(str(tmp_path)) == "http://localhost:4000"

    def test_host_port_from_start_script(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"scripts": {"start": "serve -l tcp://0.0.0.0:5050"}}))
        assert url_from_start_script(str(tmp_path)) == "http://localhost:5050"

    def test_probe_common_ports(self, tmp_path):
        ok = MagicMock(is_success=True)

        def head(url, **kwargs):
            if url.endswith(":3000"):
                raise httpx.ConnectError("refused")
            return ok

        with patch("shipcheck.executor.browser_check.httpx.head", side_effect=head) as mock_head:
            url = detect_server_url(str(tmp_path))
        assert url == "http://localhost:5173"
        assert mock_head.call_count == 2

    def test_nothing_listening(self, tmp_path):
        with patch("shipcheck.executor.browser_check.httpx.head", side_effect=httpx.ConnectError("refused")):
            assert detect_server_url(str(tmp_path), candidates=["http://localhost:9"]) is None

    def test_probing_stops_at_deadline(self, tmp_path):
        with patch.object(Deadline, "expired", new_callable=PropertyMock, return_value=True), \
             patch("shipcheck.executor.browser_check.httpx.head") as mock_head:
            assert detect_server_url(str(tmp_path), deadline=Deadline(1)) is None
        mock_head.assert_not_called()

    def test_deadline_never_hands_out_zero(self):
        deadline = Deadline(0.001)
        assert deadline.remaining_ms(10_000) >= 1
        assert Deadline().remaining_ms(10_000) == 10_000

    def test_find_chrome_env_override(self):
        with patch("shipcheck.executor.browser_check.SHIPCHECK_CHROME_PATH", "/opt/chrome"):
            assert find_chrome() == "/opt/chrome"

    def test_find_chrome_linux(self):
        with patch("shipcheck.executor.browser_check.SHIPCHECK_CHROME_PATH", None), \
             patch("shipcheck.executor.browser_check.os.path.isfile",
                   side_effect=lambda p: p == "/usr/bin/chromium"):
            assert find_chrome("linux") == "/usr/bin/chromium"

    def test_find_chrome_none(self):
        with patch("shipcheck.executor.browser_check.SHIPCHECK_CHROME_PATH", None), \
             patch("shipcheck.executor.browser_check.os.path.isfile", return_value=False):
            assert find_chrome("darwin") is None
