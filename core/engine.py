from urllib.parse import urlparse
import asyncio
import logging
from typing import Any, List, Optional, Sequence, Tuple

from core.config import Settings
from core.errors import InvalidInput, ScanPartialFailure, ScanTotalFailure
from models.raw import DomResult, HtmlResult
from models.report import AggregatedReport, EngineFailed, EngineOutcome, EngineSucceeded
from models.violation import AffectedNode, PassedRule, Summary, Violation

# Fixed mapping of HTMLCS issue types onto the unified severity scale.
HTML_SEVERITY = {
    "error": "critical",
    "warning": "serious",
    "notice": "moderate",
}


def validate_url(url: Any) -> str:
    """Return ``url`` if it is an absolute http(s) URL with a host, else raise InvalidInput."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidInput("URL is required")
    try:
        parsed = urlparse(url.strip())
    except ValueError as e:
        raise InvalidInput(f"Invalid URL format: {e}")
    if parsed.scheme not in ("http", "https") or not parsed.netloc or not parsed.hostname:
        raise InvalidInput("Invalid URL format")
    return url.strip()


def normalize_dom_result(result: DomResult, source: str = "axe") -> Tuple[List[Violation], List[PassedRule]]:
    """Map axe violations onto Violation, giving node-less ones a placeholder node."""
    violations = [
        Violation(
            rule_id=v.rule_id,
            description=v.description,
            severity=v.impact,
            nodes=tuple(v.nodes) or (AffectedNode.placeholder(),),
            help_url=v.help_url,
            source=source,
        )
        for v in result.violations
    ]
    return violations, list(result.passes)


def normalize_html_result(result: HtmlResult, source: str = "htmlcs") -> Tuple[List[Violation], List[PassedRule]]:
    """Map each HTMLCS issue onto exactly one Violation with exactly one node."""
    violations = [
        Violation(
            rule_id=issue.code,
            description=issue.message,
            severity=HTML_SEVERITY.get(issue.issue_type),
            nodes=(AffectedNode(selector=issue.selector, html=issue.html),),
            source=source,
        )
        for issue in result.issues
    ]
    return violations, list(result.passes)


def _normalize(result: Any, source: str) -> Tuple[List[Violation], List[PassedRule]]:
    if isinstance(result, DomResult):
        return normalize_dom_result(result, source)
    if isinstance(result, HtmlResult):
        return normalize_html_result(result, source)
    raise TypeError(f"Unsupported result type from {source}: {type(result).__name__}")


def merge_outcomes(outcomes: Sequence[EngineOutcome]) -> AggregatedReport:
    """Merge engine outcomes in the given order into one report.

    Raises ScanTotalFailure when every outcome is a failure.
    """
    failures = [o for o in outcomes if not o.ok]
    if outcomes and len(failures) == len(outcomes):
        raise ScanTotalFailure({o.engine: o.reason for o in failures})

    violations: List[Violation] = []
    passes: List[PassedRule] = []
    for outcome in outcomes:
        if not outcome.ok:
            continue
        engine_violations, engine_passes = _normalize(outcome.result, outcome.engine)
        violations.extend(engine_violations)
        passes.extend(engine_passes)

    return AggregatedReport(
        violations=tuple(violations),
        passes=tuple(passes),
        summary=Summary.from_violations(violations),
        outcomes=tuple(outcomes),
    )


class Aggregator:
    def __init__(self, dom_scanner=None, html_scanner=None, settings: Optional[Settings] = None):
        """Set up the two rule engines.

        Args:
            dom_scanner: Engine whose findings come first (defaults to axe-core)
            html_scanner: Second engine (defaults to HTML_CodeSniffer)
            settings: Runtime settings; timeouts and script sources come from here
        """
        self.logger = logging.getLogger(__name__)
        self.settings = settings or Settings()

        if dom_scanner is None or html_scanner is None:
            from scanners.axe import AxeScanner
            from scanners.htmlcs import HtmlcsScanner

            dom_scanner = dom_scanner or AxeScanner(
                script_source=self.settings.axe_script,
                navigation_timeout=self.settings.navigation_timeout,
            )
            html_scanner = html_scanner or HtmlcsScanner(
                script_source=self.settings.htmlcs_script,
                navigation_timeout=self.settings.navigation_timeout,
                include_notices=self.settings.include_notices,
            )

        self.scanners = [dom_scanner, html_scanner]
        self.logger.debug(f"Initialized aggregator with engines: {', '.join(s.name for s in self.scanners)}")

    async def _run_scanner(self, scanner, url: str) -> EngineOutcome:
        timeout = self.settings.scan_timeout
        self.logger.info(f"Running {scanner.name} on {url}")
        try:
            result = await asyncio.wait_for(scanner.scan(url), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"{scanner.name} timed out after {timeout}s")
            return EngineFailed(engine=scanner.name, reason=f"Timed out after {timeout}s")
        except Exception as e:
            self.logger.error(f"Error in {scanner.name}: {e}", exc_info=True)
            return EngineFailed(engine=scanner.name, reason=str(e) or type(e).__name__)

        if not isinstance(result, (DomResult, HtmlResult)):
            reason = f"Unsupported result type: {type(result).__name__}"
            self.logger.error(f"Error in {scanner.name}: {reason}")
            return EngineFailed(engine=scanner.name, reason=reason)
        return EngineSucceeded(engine=scanner.name, result=result)

    async def run_engines(self, url: str) -> List[EngineOutcome]:
        """Run every engine concurrently and wait for all of them."""
        tasks = [self._run_scanner(scanner, url) for scanner in self.scanners]
        return list(await asyncio.gather(*tasks))

    async def aggregate(self, url: str) -> AggregatedReport:
        url = validate_url(url)
        outcomes = await self.run_engines(url)

        report = merge_outcomes(outcomes)
        for outcome in outcomes:
            if not outcome.ok:
                self.logger.warning(f"Degraded scan of {url}: {ScanPartialFailure(outcome.engine, outcome.reason)}")

        self.logger.info(
            f"Scan of {url} complete: {len(report.violations)} violations, "
            f"{len(report.passes)} passes, summary={report.summary.as_dict()}"
        )
        return report
