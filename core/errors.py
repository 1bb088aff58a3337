"""Exception hierarchy for scanning and remediation failures."""
from typing import Dict


class A11yScanError(Exception):
    """Base class for all errors raised by this package."""


class InvalidInput(A11yScanError):
    """The requested URL is not an absolute http(s) URL. No engine was run."""


class ScanPartialFailure(A11yScanError):
    """One engine failed while the other succeeded.

    Never raised to callers: the aggregator records it as an
    ``EngineFailed`` outcome and returns the degraded report.
    """

    def __init__(self, engine: str, reason: str):
        super().__init__(f"{engine} failed: {reason}")
        self.engine = engine
        self.reason = reason


class ScanTotalFailure(A11yScanError):
    """Both engines failed; carries one reason per engine."""

    def __init__(self, reasons: Dict[str, str]):
        self.reasons = dict(reasons)
        details = "; ".join(f"{engine}: {reason}" for engine, reason in self.reasons.items())
        super().__init__(f"All accessibility engines failed ({details})")


ScanFailed = ScanTotalFailure


class CredentialUnavailable(A11yScanError):
    """No API key is configured for the remediation service."""


class RemediationFailed(A11yScanError):
    """Both the streamed and the non-streamed remediation requests failed."""
