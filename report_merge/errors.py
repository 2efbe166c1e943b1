"""Error taxonomy for a report build."""

from __future__ import annotations

from .models.decision import LLMUsage


class ReportMergeError(Exception):
    """Base class for report build failures."""


class StructuralError(ReportMergeError):
    """Raised when the prior report cannot be parsed into any category."""


class ConfigurationError(ReportMergeError, ValueError):
    """Raised when builder settings are out of range."""


class OracleError(ReportMergeError):
    """A classification batch failed; the whole build is aborted.

    ``usage`` holds the tokens already spent by every batch that reported
    usage, so callers can still account for the cost of the failed build.
    """

    def __init__(
        self,
        message: str,
        *,
        usage: LLMUsage | None = None,
        batch_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.usage = usage or LLMUsage()
        self.batch_index = batch_index


class CriticError(ReportMergeError):
    """The critic pass failed. Never fatal: decisions stay as they were."""

    def __init__(self, message: str, *, usage: LLMUsage | None = None) -> None:
        super().__init__(message)
        self.usage = usage or LLMUsage()
