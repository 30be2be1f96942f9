"""Simulation — trial generation, aggregation and the chunked batch runner."""

from montyhall.simulation.aggregator import record_chunk, record_trial, replay_history, verify_batch
from montyhall.simulation.exceptions import (
    AlreadyRunningError,
    InvalidArgumentError,
    InvalidDoorError,
    SimulationError,
)
from montyhall.simulation.runner import BatchRunner, validate_strategies
from montyhall.simulation.trials import TrialGenerator, parse_strategy

__all__ = [
    "AlreadyRunningError",
    "BatchRunner",
    "InvalidArgumentError",
    "InvalidDoorError",
    "SimulationError",
    "TrialGenerator",
    "parse_strategy",
    "record_chunk",
    "record_trial",
    "replay_history",
    "validate_strategies",
    "verify_batch",
]
