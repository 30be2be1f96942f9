"""Analysis-layer exceptions."""

from __future__ import annotations


class AnalysisError(Exception):
    """Base exception for statistics errors."""


class InsufficientSampleError(AnalysisError):
    """Raised when a statistic needs at least one played game."""
