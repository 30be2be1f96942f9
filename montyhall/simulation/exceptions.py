"""Simulation-layer exceptions."""

from __future__ import annotations


class SimulationError(Exception):
    """Base exception for simulation errors."""


class InvalidArgumentError(SimulationError, ValueError):
    """Raised for a bad game count, chunk size, strategy list or door."""


class InvalidDoorError(InvalidArgumentError):
    """Raised when a door index is outside the three-door set."""


class AlreadyRunningError(SimulationError):
    """Raised when a run is started while another is in progress."""
