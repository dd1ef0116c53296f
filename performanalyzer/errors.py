"""Error taxonomy for analysis, configuration and snapshot storage."""

from __future__ import annotations


class AnalyzerError(Exception):
    """Base class for all errors raised by performanalyzer."""


class InputError(AnalyzerError):
    """Raised when a file or directory cannot be analyzed.

    Bulk and CI runs skip the offending unit; single-file commands report it.
    """

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ConfigError(AnalyzerError, ValueError):
    """Raised for invalid configuration before any analysis starts."""


class StorageError(AnalyzerError):
    """Raised when snapshot storage cannot be set up or written."""


class AnalysisAborted(AnalyzerError):
    """Raised when a bulk run is cancelled before results are aggregated."""
