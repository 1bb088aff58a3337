"""HTML_CodeSniffer adapter: WCAG2AA sniffs run against the rendered page."""
import asyncio
import logging
from typing import Any, Dict, Optional

from core.browser import BrowserPool, get_browser_pool, navigate
from core.config import DEFAULT_HTMLCS_SCRIPT, DEFAULT_NAVIGATION_TIMEOUT
from fetch.scripts import load_script
from models.raw import HtmlIssue, HtmlResult

logger = logging.getLogger(__name__)

STANDARD = "WCAG2AA"
SETTLE_DELAY = 3.0
ANALYSIS_TIMEOUT = 60.0
CONTEXT_MAX_LENGTH = 300

# HTMLCS message type codes
ISSUE_TYPES = {1: "error", 2: "warning", 3: "notice"}

RUN_HTMLCS = """
(standard) => new Promise((resolve, reject) => {
  if (!window.HTMLCS) {
    reject(new Error('HTML_CodeSniffer is not loaded in the page'));
    return;
  }
  const selectorFor = (element) => {
    if (!element || element.nodeType !== 1) {
      return '';
    }
    const parts = [];
    let node = element;
    while (node && node.nodeType === 1) {
      if (node.id) {
        parts.unshift('#' + CSS.escape(node.id));
        break;
      }
      let part = node.tagName.toLowerCase();
      const parent = node.parentElement;
      if (parent) {
        const siblings = Array.from(parent.children).filter(c => c.tagName === node.tagName);
        if (siblings.length > 1) {
          part += ':nth-child(' + (Array.from(parent.children).indexOf(node) + 1) + ')';
        }
      }
      parts.unshift(part);
      node = parent;
    }
    return parts.join(' > ');
  };
  window.HTMLCS.process(standard, window.document, () => {
    const messages = window.HTMLCS.getMessages().map((message) => ({
      code: message.code,
      message: message.msg,
      typeCode: message.type,
      selector: selectorFor(message.element),
      context: message.element && message.element.outerHTML ? message.element.outerHTML : '',
    }));
    resolve({documentTitle: document.title, pageUrl: window.location.href, messages: messages});
  }, () => reject(new Error('HTML_CodeSniffer failed to process the page')), 'en');
})
"""


def _truncate_value(value: str, max_length: int = CONTEXT_MAX_LENGTH) -> str:
    if not value or len(value) <= max_length:
        return value
    return value[:max_length] + "..."


def parse_htmlcs_results(
    payload: Dict[str, Any],
    include_warnings: bool = True,
    include_notices: bool = False,
) -> HtmlResult:
    """Convert raw HTMLCS messages into an HtmlResult, keeping message order.

    The returned payload mirrors the pa11y JSON report: ``documentTitle``,
    ``pageUrl`` and the kept ``issues``.
    """
    allowed = {"error"}
    if include_warnings:
        allowed.add("warning")
    if include_notices:
        allowed.add("notice")

    issues = []
    raw_issues = []
    for message in payload.get("messages") or []:
        issue_type = ISSUE_TYPES.get(message.get("typeCode"))
        if issue_type not in allowed:
            continue
        context = _truncate_value(message.get("context") or "")
        issue = HtmlIssue(
            code=message.get("code", ""),
            message=message.get("message", ""),
            issue_type=issue_type,
            selector=message.get("selector") or "",
            html=context,
        )
        issues.append(issue)
        raw_issues.append({
            "code": issue.code,
            "type": issue.issue_type,
            "typeCode": message.get("typeCode"),
            "message": issue.message,
            "context": issue.html,
            "selector": issue.selector,
            "runner": "htmlcs",
        })

    report = {
        "documentTitle": payload.get("documentTitle", ""),
        "pageUrl": payload.get("pageUrl", ""),
        "issues": raw_issues,
    }
    return HtmlResult(issues=tuple(issues), payload=report)


class HtmlcsScanner:
    name = "htmlcs"

    def __init__(
        self,
        pool: Optional[BrowserPool] = None,
        script_source: str = DEFAULT_HTMLCS_SCRIPT,
        navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT,
        analysis_timeout: float = ANALYSIS_TIMEOUT,
        include_warnings: bool = True,
        include_notices: bool = False,
        settle_delay: float = SETTLE_DELAY,
    ):
        self.pool = pool or get_browser_pool()
        self.script_source = script_source
        self.navigation_timeout = navigation_timeout
        self.analysis_timeout = analysis_timeout
        self.include_warnings = include_warnings
        self.include_notices = include_notices
        self.settle_delay = settle_delay

    async def scan(self, url: str) -> HtmlResult:
        source = await load_script(self.script_source)
        async with self.pool.page() as page:
            logger.debug(f"htmlcs: navigating to {url}")
            await navigate(page, url, timeout=self.navigation_timeout)
            if self.settle_delay:
                await asyncio.sleep(self.settle_delay)
            await page.add_script_tag(content=source)
            try:
                payload = await asyncio.wait_for(page.evaluate(RUN_HTMLCS, STANDARD), timeout=self.analysis_timeout)
            except asyncio.TimeoutError:
                raise RuntimeError(f"HTML_CodeSniffer analysis timed out after {self.analysis_timeout}s")

        result = parse_htmlcs_results(
            payload or {},
            include_warnings=self.include_warnings,
            include_notices=self.include_notices,
        )
        logger.info(f"htmlcs: {len(result.issues)} issues on {url}")
        return result
