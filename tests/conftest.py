import asyncio
import os
import sys
import pytest

# Ensure project root is on sys.path for imports like `core.*`
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)

from models.raw import DomResult, DomViolation, HtmlIssue, HtmlResult
from models.violation import AffectedNode, PassedRule


class FakeScanner:
    """Stands in for a rule engine; records the URLs it was asked to scan."""

    def __init__(self, name, result=None, error=None, delay=0.0):
        self.name = name
        self.result = result
        self.error = error
        self.delay = delay
        self.calls = []

    async def scan(self, url):
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def dom_result():
    return DomResult(
        violations=(
            DomViolation(
                rule_id="image-alt",
                description="Ensures <img> elements have alternate text",
                impact="critical",
                nodes=(AffectedNode(selector="img.logo", html='<img class="logo" src="logo.png">'),),
                help_url="https://dequeuniversity.com/rules/axe/4.10/image-alt",
            ),
            DomViolation(
                rule_id="color-contrast",
                description="Ensures text has sufficient color contrast",
                impact="serious",
                nodes=(
                    AffectedNode(selector="p.muted", html='<p class="muted">Hello</p>'),
                    AffectedNode(selector="span.hint", html='<span class="hint">Hint</span>'),
                ),
            ),
        ),
        passes=(PassedRule(rule_id="document-title", description="Ensures each page has a title"),),
        payload={"violations": [{"id": "image-alt"}, {"id": "color-contrast"}], "passes": [{"id": "document-title"}]},
    )


@pytest.fixture
def html_result():
    return HtmlResult(
        issues=(
            HtmlIssue(
                code="WCAG2AA.Principle1.Guideline1_3.1_3_1.H42",
                message="Heading markup should be used if this content is intended as a heading.",
                issue_type="warning",
                selector="#intro > p",
                html="<p><b>Intro</b></p>",
            ),
            HtmlIssue(
                code="WCAG2AA.Principle4.Guideline4_1.4_1_2.H91.A.NoContent",
                message="Anchor element found with a valid href attribute, but no link content has been supplied.",
                issue_type="error",
                selector="html > body > a",
                html='<a href="/home"></a>',
            ),
        ),
        payload={"documentTitle": "Example", "pageUrl": "https://example.com/", "issues": []},
    )


@pytest.fixture
def fake_scanner_factory():
    return FakeScanner
