"""Monty Hall batch simulator — chunked trial engine and statistical analysis."""

__version__ = "0.1.0"
