"""Per-violation remediation results, one cache per scanned report.

Entries are keyed by rule id, the first 20 characters of the description and
the node index. Two violations that agree on all three share one entry.
"""
import asyncio
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from core.errors import A11yScanError

logger = logging.getLogger(__name__)

DESCRIPTION_PREFIX_LENGTH = 20
MAX_REPORTS = 100
ERROR_PREFIX = "Error getting solution: "

RemediationKey = Tuple[str, str, int]

PENDING = "pending"
STREAMING = "streaming"
COMPLETE = "complete"
ERROR = "error"


def remediation_key(rule_id: str, description: str, node_index: int) -> RemediationKey:
    return (rule_id, (description or "")[:DESCRIPTION_PREFIX_LENGTH], node_index)


@dataclass
class RemediationEntry:
    status: str = PENDING
    text: str = ""

    @property
    def done(self) -> bool:
        return self.status in (COMPLETE, ERROR)


class RemediationCache:
    def __init__(self):
        self._entries: Dict[RemediationKey, RemediationEntry] = {}
        self._inflight: Dict[RemediationKey, asyncio.Task] = {}

    def get(self, key: RemediationKey) -> Optional[RemediationEntry]:
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_request(
        self,
        rule_id: str,
        description: str,
        node_index: int,
        html_context: str,
        client,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> RemediationEntry:
        """Return the stored entry, requesting it from ``client`` only once.

        Failures are stored as an error entry and are not retried.
        """
        key = remediation_key(rule_id, description, node_index)
        entry = self._entries.get(key)
        if entry is not None and entry.done:
            return entry

        task = self._inflight.get(key)
        if task is None:
            entry = self._entries.setdefault(key, RemediationEntry())
            task = asyncio.ensure_future(self._request(key, entry, rule_id, description, html_context, client, on_progress))
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _request(self, key, entry, rule_id, description, html_context, client, on_progress) -> RemediationEntry:
        def progress(state: str) -> None:
            entry.status = STREAMING
            entry.text = state
            if on_progress is not None:
                on_progress(state)

        try:
            entry.text = await client.get_remediation(
                rule_id, description, html_context, on_progress=progress
            )
            entry.status = COMPLETE
        except A11yScanError as e:
            logger.warning(f"Remediation for {rule_id} failed: {e}")
            entry.text = f"{ERROR_PREFIX}{e}"
            entry.status = ERROR
        except Exception as e:
            logger.error(f"Unexpected error during remediation for {rule_id}: {e}", exc_info=True)
            entry.text = f"{ERROR_PREFIX}{str(e) or type(e).__name__}"
            entry.status = ERROR
        finally:
            self._inflight.pop(key, None)
        return entry


class ReportRemediations:
    """Remediation caches for the most recent scans, one per report.

    Opening a report beyond ``max_reports`` evicts the oldest one.
    """

    def __init__(self, max_reports: int = MAX_REPORTS):
        self.max_reports = max_reports
        self._reports: "OrderedDict[str, RemediationCache]" = OrderedDict()

    def open(self) -> str:
        scan_id = uuid.uuid4().hex
        self._reports[scan_id] = RemediationCache()
        while len(self._reports) > self.max_reports:
            evicted, _ = self._reports.popitem(last=False)
            logger.debug(f"Evicted remediations for scan {evicted}")
        return scan_id

    def get(self, scan_id: Optional[str]) -> Optional[RemediationCache]:
        if not scan_id:
            return None
        return self._reports.get(scan_id)

    def __len__(self) -> int:
        return len(self._reports)
