"""Export-layer exceptions."""

from __future__ import annotations


class ExportError(Exception):
    """Base exception for export errors."""


class UnsupportedFormatError(ExportError):
    """Raised for a format token other than json or csv."""


class NoDataError(ExportError):
    """Raised when there is no simulation result to export."""
