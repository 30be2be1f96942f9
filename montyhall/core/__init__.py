"""Core module — config, types, logging."""

from montyhall.core.config import Settings, get_settings, load_settings, reset_settings
from montyhall.core.logging import setup_logging
from montyhall.core.types import (
    DOORS,
    THEORETICAL_WIN_RATES,
    ConfidenceInterval,
    ConvergencePoint,
    ProgressEvent,
    RunState,
    SimulationResult,
    SimulationStatistics,
    Strategy,
    StrategyBatch,
    Trial,
    WinRatePoint,
)

__all__ = [
    "DOORS",
    "THEORETICAL_WIN_RATES",
    "ConfidenceInterval",
    "ConvergencePoint",
    "ProgressEvent",
    "RunState",
    "Settings",
    "SimulationResult",
    "SimulationStatistics",
    "Strategy",
    "StrategyBatch",
    "Trial",
    "WinRatePoint",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
