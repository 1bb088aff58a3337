from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union, TYPE_CHECKING

from models.raw import DomResult, HtmlResult
from models.violation import PassedRule, Summary, Violation

if TYPE_CHECKING:
    from core.audience import AudienceClassifier

EngineResult = Union[DomResult, HtmlResult]


@dataclass(frozen=True)
class EngineSucceeded:
    engine: str
    result: EngineResult
    ok = True


@dataclass(frozen=True)
class EngineFailed:
    """An engine that raised or timed out. Distinct from "found nothing"."""
    engine: str
    reason: str
    ok = False


EngineOutcome = Union[EngineSucceeded, EngineFailed]


@dataclass(frozen=True)
class AggregatedReport:
    violations: Tuple[Violation, ...]
    passes: Tuple[PassedRule, ...]
    summary: Summary
    outcomes: Tuple[EngineOutcome, ...] = field(default_factory=tuple)

    @property
    def failed_engines(self) -> List[str]:
        return [o.engine for o in self.outcomes if not o.ok]


def _serialize_violation(v: Violation, classifier: Optional["AudienceClassifier"] = None) -> Dict[str, Any]:
    data = {
        "ruleId": v.rule_id,
        "description": v.description,
        "severity": v.severity,
        "affectedNodes": [{"selector": n.selector, "htmlSnippet": n.html} for n in v.nodes],
        "source": v.source,
    }
    if v.help_url:
        data["helpUrl"] = v.help_url
    if classifier is not None:
        audience = classifier.classify(v.rule_id)
        data["audience"] = list(audience) if audience is not None else None
    return data


def _serialize_outcome(outcome: EngineOutcome) -> Dict[str, Any]:
    if outcome.ok:
        return dict(outcome.result.payload)
    return {
        "error": f"{outcome.engine} test failed",
        "details": outcome.reason,
        "violations": [],
        "passes": [],
    }


def report_to_dict(report: AggregatedReport, classifier: Optional["AudienceClassifier"] = None) -> Dict[str, Any]:
    """JSON shape of a scan response: merged findings plus raw per-engine diagnostics."""
    data: Dict[str, Any] = {
        "violations": [_serialize_violation(v, classifier) for v in report.violations],
        "passes": [{"ruleId": p.rule_id, "description": p.description} for p in report.passes],
        "summary": report.summary.as_dict(),
    }
    for outcome in report.outcomes:
        data[outcome.engine] = _serialize_outcome(outcome)
    return data
