import os
import logging
import yaml
from typing import Dict, Tuple

logger = logging.getLogger(__name__)

RULES_DIR = os.path.dirname(os.path.abspath(__file__))
AUDIENCES_FILE = os.path.join(RULES_DIR, "audiences.yaml")


def load_audiences(path: str = AUDIENCES_FILE) -> Dict[str, Tuple[str, ...]]:
    """
    Loads the rule id -> audience labels table from a YAML mapping.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Audience file {path} must contain a mapping, got {type(data).__name__}")

    audiences: Dict[str, Tuple[str, ...]] = {}
    for rule_id, labels in data.items():
        # Basic validation
        if not isinstance(labels, list) or not all(isinstance(label, str) for label in labels):
            logger.warning(f"Skipping invalid audience entry in {path}: {rule_id}={labels!r}")
            continue
        audiences[str(rule_id)] = tuple(labels)
    return audiences


# Example usage (for testing)
if __name__ == "__main__":
    table = load_audiences()
    print(f"Loaded {len(table)} audience entries.")
    for rule_id, labels in table.items():
        print(f"  - {rule_id}: {', '.join(labels)}")
