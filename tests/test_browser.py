"""Browser lifecycle and scanner page flow, driven by a fake playwright driver."""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from core.browser import BrowserPool, get_browser_pool, navigate
from scanners.axe import AxeScanner
from scanners.htmlcs import HtmlcsScanner


class FakePage:
    def __init__(self, goto_failures=0, evaluate_result=None, evaluate_delay=0.0):
        self.goto_failures = goto_failures
        self.evaluate_result = evaluate_result
        self.evaluate_delay = evaluate_delay
        self.gotos = []
        self.scripts = []
        self.evaluated = []
        self.handlers = {}
        self.timeouts = {}

    def set_default_navigation_timeout(self, timeout):
        self.timeouts["navigation"] = timeout

    def set_default_timeout(self, timeout):
        self.timeouts["default"] = timeout

    def on(self, event, handler):
        self.handlers[event] = handler

    async def goto(self, url, wait_until=None, timeout=None):
        self.gotos.append((url, wait_until, timeout))
        if len(self.gotos) <= self.goto_failures:
            raise PlaywrightError(f"net::ERR_CONNECTION_RESET at {url}")

    async def add_script_tag(self, content=None):
        self.scripts.append(content)

    async def evaluate(self, script, arg=None):
        self.evaluated.append(arg)
        if self.evaluate_delay:
            await asyncio.sleep(self.evaluate_delay)
        return self.evaluate_result


class FakeContext:
    def __init__(self, page):
        self.page = page
        self.closed = False

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page_factory):
        self.page_factory = page_factory
        self.contexts = []
        self.close_calls = 0

    def is_connected(self):
        return self.close_calls == 0

    async def new_context(self, bypass_csp=False):
        assert bypass_csp is True
        context = FakeContext(self.page_factory())
        self.contexts.append(context)
        return context

    async def close(self):
        self.close_calls += 1


class FakeChromium:
    def __init__(self, page_factory):
        self.page_factory = page_factory
        self.launches = []

    async def launch(self, headless=True, args=None, timeout=None):
        await asyncio.sleep(0)
        browser = FakeBrowser(self.page_factory)
        self.launches.append((headless, args, browser))
        return browser


class FakeDriver:
    def __init__(self, page_factory):
        self.chromium = FakeChromium(page_factory)
        self.stop_calls = 0

    async def stop(self):
        self.stop_calls += 1


class FakeDriverManager:
    def __init__(self, driver):
        self.driver = driver

    async def start(self):
        return self.driver


@pytest.fixture
def page():
    return FakePage()


@pytest.fixture
def driver(monkeypatch, page):
    driver = FakeDriver(lambda: page)
    monkeypatch.setattr("core.browser.async_playwright", lambda: FakeDriverManager(driver))
    return driver


@pytest.mark.asyncio
async def test_browser_launches_once_for_concurrent_users(driver):
    pool = BrowserPool()

    first, second = await asyncio.gather(pool.start(), pool.start())
    third = await pool.start()

    assert first is second is third
    assert len(driver.chromium.launches) == 1
    headless, args, _ = driver.chromium.launches[0]
    assert headless is True
    assert "--no-sandbox" in args


@pytest.mark.asyncio
async def test_page_checkout_uses_fresh_context_and_always_closes_it(driver, page):
    pool = BrowserPool()

    async with pool.page() as checked_out:
        assert checked_out is page
        assert page.timeouts == {"navigation": 120000, "default": 60000}
        assert {"console", "pageerror"} <= set(page.handlers)

    with pytest.raises(RuntimeError):
        async with pool.page():
            raise RuntimeError("scan blew up")

    browser = driver.chromium.launches[0][2]
    assert len(browser.contexts) == 2
    assert all(context.closed for context in browser.contexts)


@pytest.mark.asyncio
async def test_close_is_idempotent_and_allows_relaunch(driver):
    pool = BrowserPool()
    await pool.start()

    await pool.close()
    await pool.close()

    browser = driver.chromium.launches[0][2]
    assert browser.close_calls == 1
    assert driver.stop_calls == 1
    assert pool.started is False

    await pool.start()
    assert len(driver.chromium.launches) == 2


@pytest.mark.asyncio
async def test_close_without_start_does_nothing(driver):
    await BrowserPool().close()

    assert driver.chromium.launches == []
    assert driver.stop_calls == 0


def test_process_wide_pool_is_shared():
    assert get_browser_pool() is get_browser_pool()


@pytest.mark.asyncio
async def test_navigate_retries_until_success():
    page = FakePage(goto_failures=2)

    await navigate(page, "https://example.com", timeout=5, retry_delay=0)

    assert len(page.gotos) == 3
    assert page.gotos[0] == ("https://example.com", "networkidle", 5000)


@pytest.mark.asyncio
async def test_navigate_gives_up_after_three_attempts():
    page = FakePage(goto_failures=5)

    with pytest.raises(PlaywrightError):
        await navigate(page, "https://unreachable.example", timeout=5, retry_delay=0)

    assert len(page.gotos) == 3


@pytest.mark.asyncio
async def test_axe_scan_injects_engine_and_parses_results(driver, page):
    page.evaluate_result = {
        "violations": [{
            "id": "image-alt",
            "impact": "critical",
            "description": "Images must have alternate text",
            "nodes": [{"target": ["img"], "html": "<img>"}],
        }],
        "passes": [{"id": "document-title", "description": "Documents must have a title"}],
    }
    pool = BrowserPool()
    scanner = AxeScanner(pool=pool, script_source="axe.min.js", navigation_timeout=10)

    with patch("scanners.axe.load_script", new=AsyncMock(return_value="window.axe = {};")):
        result = await scanner.scan("https://example.com")

    assert page.gotos == [("https://example.com", "networkidle", 10000)]
    assert page.scripts == ["window.axe = {};"]
    assert page.evaluated == [scanner.tags]
    assert [v.rule_id for v in result.violations] == ["image-alt"]
    assert result.passes[0].rule_id == "document-title"
    assert driver.chromium.launches[0][2].contexts[0].closed


@pytest.mark.asyncio
async def test_axe_analysis_timeout_closes_page(driver, page):
    page.evaluate_delay = 1.0
    scanner = AxeScanner(pool=BrowserPool(), script_source="axe.min.js", analysis_timeout=0.01)

    with patch("scanners.axe.load_script", new=AsyncMock(return_value="window.axe = {};")):
        with pytest.raises(RuntimeError, match="timed out"):
            await scanner.scan("https://example.com")

    assert driver.chromium.launches[0][2].contexts[0].closed


@pytest.mark.asyncio
async def test_htmlcs_scan_runs_wcag2aa_and_filters_notices(driver, page):
    page.evaluate_result = {
        "documentTitle": "Example",
        "pageUrl": "https://example.com/",
        "messages": [
            {"code": "E1", "message": "error", "typeCode": 1, "selector": "img", "context": "<img>"},
            {"code": "N1", "message": "notice", "typeCode": 3, "selector": "p", "context": "<p></p>"},
        ],
    }
    scanner = HtmlcsScanner(pool=BrowserPool(), script_source="HTMLCS.js", settle_delay=0)

    with patch("scanners.htmlcs.load_script", new=AsyncMock(return_value="window.HTMLCS = {};")):
        result = await scanner.scan("https://example.com")

    assert page.scripts == ["window.HTMLCS = {};"]
    assert page.evaluated == ["WCAG2AA"]
    assert [issue.code for issue in result.issues] == ["E1"]
    assert result.payload["documentTitle"] == "Example"
    assert driver.chromium.launches[0][2].contexts[0].closed


@pytest.mark.asyncio
async def test_missing_engine_script_fails_before_browser_use(driver):
    from fetch.scripts import ScriptUnavailable

    scanner = HtmlcsScanner(pool=BrowserPool(), script_source="HTMLCS.js", settle_delay=0)

    with patch("scanners.htmlcs.load_script", new=AsyncMock(side_effect=ScriptUnavailable("not found"))):
        with pytest.raises(ScriptUnavailable):
            await scanner.scan("https://example.com")

    assert driver.chromium.launches == []
