"""Aggregator — per-strategy counts and the running win-rate series."""

from __future__ import annotations

from collections.abc import Iterable

from montyhall.core.types import StrategyBatch, Trial, WinRatePoint
from montyhall.simulation.exceptions import InvalidArgumentError


def record_trial(batch: StrategyBatch, trial: Trial) -> WinRatePoint:
    """Append *trial* to *batch* and extend its win-rate history.

    Must be called exactly once per generated trial, in generation order.
    Returns the new history point.
    """
    if trial.strategy != batch.strategy:
        raise InvalidArgumentError(
            f"Trial strategy {trial.strategy} does not match batch {batch.strategy}"
        )

    batch.trials.append(trial)
    batch.played += 1
    if trial.won:
        batch.won += 1

    point = WinRatePoint(
        game_number=batch.played,
        win_rate=batch.won / batch.played,
        cumulative_wins=batch.won,
    )
    batch.win_rate_history.append(point)
    return point


def record_chunk(batch: StrategyBatch, trials: Iterable[Trial]) -> int:
    """Record every trial in *trials*; returns how many were recorded."""
    count = 0
    for trial in trials:
        record_trial(batch, trial)
        count += 1
    return count


def replay_history(trials: Iterable[Trial]) -> list[WinRatePoint]:
    """Recompute the win-rate series from a trial sequence."""
    history: list[WinRatePoint] = []
    wins = 0
    for index, trial in enumerate(trials, start=1):
        if trial.won:
            wins += 1
        history.append(
            WinRatePoint(game_number=index, win_rate=wins / index, cumulative_wins=wins)
        )
    return history


def verify_batch(batch: StrategyBatch) -> list[str]:
    """Return consistency problems in *batch* (empty when consistent)."""
    problems: list[str] = []
    if len(batch.trials) != batch.played:
        problems.append(f"{len(batch.trials)} trials recorded but played={batch.played}")
    actual_wins = sum(1 for t in batch.trials if t.won)
    if actual_wins != batch.won:
        problems.append(f"{actual_wins} winning trials but won={batch.won}")
    if batch.win_rate_history != replay_history(batch.trials):
        problems.append("win_rate_history does not match trial sequence")
    return problems
