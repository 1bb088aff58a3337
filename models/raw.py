"""Result shapes as returned by the two rule engines, before normalization."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from models.violation import AffectedNode, PassedRule


@dataclass(frozen=True)
class DomViolation:
    """One axe-core violation record."""
    rule_id: str
    description: str
    impact: Optional[str]
    nodes: Tuple[AffectedNode, ...] = field(default_factory=tuple)
    help_url: Optional[str] = None


@dataclass(frozen=True)
class DomResult:
    violations: Tuple[DomViolation, ...] = field(default_factory=tuple)
    passes: Tuple[PassedRule, ...] = field(default_factory=tuple)
    payload: Dict[str, Any] = field(default_factory=dict)  # untouched engine output


@dataclass(frozen=True)
class HtmlIssue:
    """One HTML_CodeSniffer message."""
    code: str
    message: str
    issue_type: str  # error, warning or notice
    selector: str
    html: str


@dataclass(frozen=True)
class HtmlResult:
    issues: Tuple[HtmlIssue, ...] = field(default_factory=tuple)
    passes: Tuple[PassedRule, ...] = field(default_factory=tuple)
    payload: Dict[str, Any] = field(default_factory=dict)
