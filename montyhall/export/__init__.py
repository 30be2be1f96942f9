"""Export — JSON and CSV transfer formats."""

from montyhall.export.exceptions import ExportError, NoDataError, UnsupportedFormatError
from montyhall.export.exporter import CSV_HEADER, SUPPORTED_FORMATS, Exporter

__all__ = [
    "CSV_HEADER",
    "SUPPORTED_FORMATS",
    "ExportError",
    "Exporter",
    "NoDataError",
    "UnsupportedFormatError",
]
