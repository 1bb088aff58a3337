"""axe-core adapter: DOM rules evaluated inside the rendered page."""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from core.browser import BrowserPool, get_browser_pool, navigate
from core.config import DEFAULT_AXE_SCRIPT, DEFAULT_NAVIGATION_TIMEOUT
from fetch.scripts import load_script
from models.raw import DomResult, DomViolation
from models.violation import AffectedNode, PassedRule

logger = logging.getLogger(__name__)

AXE_TAGS = ["wcag2a", "wcag2aa", "wcag21aa", "best-practice"]
ANALYSIS_TIMEOUT = 30.0

RUN_AXE = """
async (tags) => {
  if (!window.axe) {
    throw new Error('axe-core is not loaded in the page');
  }
  return await window.axe.run(document, {runOnly: {type: 'tag', values: tags}});
}
"""


def _target_to_selector(target: Any) -> str:
    """axe targets are selector lists, nested for iframes and shadow roots."""
    if isinstance(target, str):
        return target
    if isinstance(target, list):
        return ", ".join(_target_to_selector(t) for t in target)
    return ""


def _parse_nodes(raw_nodes: Optional[List[Dict[str, Any]]]) -> List[AffectedNode]:
    nodes = []
    for node in raw_nodes or []:
        nodes.append(
            AffectedNode(
                selector=_target_to_selector(node.get("target")),
                html=node.get("html") or "",
            )
        )
    return nodes


def parse_axe_results(payload: Dict[str, Any]) -> DomResult:
    """Convert an ``axe.run`` result object into a DomResult, order preserved."""
    violations = [
        DomViolation(
            rule_id=item.get("id", ""),
            description=item.get("description", ""),
            impact=item.get("impact"),
            nodes=tuple(_parse_nodes(item.get("nodes"))),
            help_url=item.get("helpUrl"),
        )
        for item in payload.get("violations") or []
    ]
    passes = [
        PassedRule(rule_id=item.get("id", ""), description=item.get("description", ""))
        for item in payload.get("passes") or []
    ]
    return DomResult(violations=tuple(violations), passes=tuple(passes), payload=payload)


class AxeScanner:
    name = "axe"

    def __init__(
        self,
        pool: Optional[BrowserPool] = None,
        script_source: str = DEFAULT_AXE_SCRIPT,
        navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT,
        analysis_timeout: float = ANALYSIS_TIMEOUT,
        tags: Optional[List[str]] = None,
    ):
        self.pool = pool or get_browser_pool()
        self.script_source = script_source
        self.navigation_timeout = navigation_timeout
        self.analysis_timeout = analysis_timeout
        self.tags = tags or list(AXE_TAGS)

    async def scan(self, url: str) -> DomResult:
        source = await load_script(self.script_source)
        async with self.pool.page() as page:
            logger.debug(f"axe: navigating to {url}")
            await navigate(page, url, timeout=self.navigation_timeout)
            await page.add_script_tag(content=source)
            try:
                payload = await asyncio.wait_for(page.evaluate(RUN_AXE, self.tags), timeout=self.analysis_timeout)
            except asyncio.TimeoutError:
                raise RuntimeError(f"Axe-core analysis timed out after {self.analysis_timeout}s")

        result = parse_axe_results(payload or {})
        logger.info(f"axe: {len(result.violations)} violations, {len(result.passes)} passes on {url}")
        return result
