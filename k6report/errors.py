"""
Fatal error types raised at the I/O boundaries of a report run.

Malformed log lines are *not* errors: they become
:class:`~k6report.model.ParseFailure` values and the run continues.
"""

from __future__ import annotations


class ReportError(Exception):
    """Base class for every fatal report-building error."""


class MissingInputFile(ReportError):
    """The metrics log does not exist or cannot be read."""

    def __init__(self, path, reason: str = "file not found") -> None:
        super().__init__(f"Cannot read metrics log {path}: {reason}")
        self.path = path


class RenderIOFailure(ReportError):
    """The HTML report could not be written."""

    def __init__(self, path, reason: str) -> None:
        super().__init__(f"Cannot write report {path}: {reason}")
        self.path = path


class ConfigError(ReportError):
    """Invalid settings file or threshold expression."""
