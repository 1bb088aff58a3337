"""Static lookup from rule id to the user groups a failure affects."""
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from rules.rules_loader import load_audiences


class AudienceClassifier:
    """Read-only rule id -> audience table. Unknown ids classify as None."""

    def __init__(self, table: Mapping[str, Tuple[str, ...]]):
        self._table = MappingProxyType(dict(table))

    def classify(self, rule_id: str) -> Optional[Tuple[str, ...]]:
        return self._table.get(rule_id)

    def rule_ids(self):
        return list(self._table.keys())

    def __len__(self) -> int:
        return len(self._table)


_classifier: Optional[AudienceClassifier] = None


def get_classifier() -> AudienceClassifier:
    """Get the process-wide classifier, loading the table on first use."""
    global _classifier
    if _classifier is None:
        _classifier = AudienceClassifier(load_audiences())
    return _classifier
