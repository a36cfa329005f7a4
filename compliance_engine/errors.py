"""Exception types raised by the compliance engine."""

from typing import Optional


class ComplianceEngineError(Exception):
    """Base class for all compliance engine errors."""


class UpstreamUnavailableError(ComplianceEngineError):
    """The external rule source could not be reached or answered with an error."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"Upstream unavailable for {url}: {reason}")


class StoreUnavailableError(ComplianceEngineError):
    """The rule store or preview event log failed a read or write."""


class LintValidationError(ComplianceEngineError, ValueError):
    """A lint request was malformed and was rejected before touching storage."""
