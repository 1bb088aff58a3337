from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

SEVERITIES = ("critical", "serious", "moderate", "minor")


@dataclass(frozen=True)
class AffectedNode:
    """A DOM element a violation was reported on."""
    selector: str
    html: str

    @classmethod
    def placeholder(cls) -> "AffectedNode":
        return cls(selector="", html="")


@dataclass(frozen=True)
class Violation:
    """A normalized rule failure, whichever engine reported it."""
    rule_id: str
    description: str
    severity: Optional[str]
    nodes: Tuple[AffectedNode, ...] = field(default_factory=tuple)
    help_url: Optional[str] = None
    source: str = ""  # engine name


@dataclass(frozen=True)
class PassedRule:
    rule_id: str
    description: str


@dataclass(frozen=True)
class Summary:
    critical: int = 0
    serious: int = 0
    moderate: int = 0
    minor: int = 0

    @classmethod
    def from_violations(cls, violations: Iterable[Violation]) -> "Summary":
        """Count violations per severity; unknown or missing severities are skipped."""
        counts = dict.fromkeys(SEVERITIES, 0)
        for violation in violations:
            if violation.severity in counts:
                counts[violation.severity] += 1
        return cls(**counts)

    def total(self) -> int:
        return self.critical + self.serious + self.moderate + self.minor

    def as_dict(self) -> dict:
        return {
            "critical": self.critical,
            "serious": self.serious,
            "moderate": self.moderate,
            "minor": self.minor,
        }
