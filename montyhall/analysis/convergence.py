"""Convergence diagnostics over a strategy's running win-rate history.

All functions are pure: they read a ``list[WinRatePoint]`` and return
new pydantic models.  Deviations are absolute distances between the
running win rate and the theoretical probability, in rate units
(0.05 means five percentage points).
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from montyhall.analysis.exceptions import InsufficientSampleError
from montyhall.core.types import (
    ConvergenceMeasure,
    ConvergenceMilestones,
    StabilityAssessment,
    StableStreak,
    WinRatePoint,
    WorstDeviation,
)


def deviation_series(history: Sequence[WinRatePoint], theoretical: float) -> list[float]:
    return [abs(point.win_rate - theoretical) for point in history]


def linear_trend(points: Sequence[tuple[float, float]]) -> tuple[float, float]:
    """Least-squares ``(slope, intercept)`` for ``(x, y)`` points.

    Fewer than two points (or a degenerate x range) gives a flat line
    through the mean.
    """
    if not points:
        return 0.0, 0.0

    x = np.array([p[0] for p in points], dtype=np.float64)
    y = np.array([p[1] for p in points], dtype=np.float64)
    if len(points) < 2 or np.ptp(x) == 0:
        return 0.0, float(np.mean(y))

    slope, intercept = np.polyfit(x, y, 1)
    return float(slope), float(intercept)


def stability_score(values: Sequence[float]) -> float:
    """``1 - stddev(values)``, floored at 0. Higher is steadier."""
    if len(values) < 2:
        return 0.0
    return max(0.0, 1.0 - float(np.std(values)))


def measure_convergence(
    history: Sequence[WinRatePoint],
    theoretical: float,
) -> ConvergenceMeasure:
    """Summarize the deviation series and its trend.

    ``convergence_rate`` is the negated slope of the least-squares line
    through ``(index, deviation)``: positive means the deviation shrinks
    as games accumulate.
    """
    if not history:
        raise InsufficientSampleError("Convergence needs at least one history point")

    deviations = deviation_series(history, theoretical)
    slope, _ = linear_trend([(float(i), dev) for i, dev in enumerate(deviations)])

    return ConvergenceMeasure(
        deviations=deviations,
        final_deviation=deviations[-1],
        max_deviation=max(deviations),
        min_deviation=min(deviations),
        average_deviation=float(np.mean(deviations)),
        convergence_rate=-slope,
        is_converging=slope < 0,
        stability_score=stability_score(deviations),
    )


def assess_stability(
    history: Sequence[WinRatePoint],
    theoretical: float,
    threshold: float = 0.05,
    window_fraction: float = 0.1,
    min_window: int = 10,
) -> StabilityAssessment:
    """Check whether every point in the trailing window is within *threshold*.

    The window is ``max(min_window, floor(window_fraction * len(history)))``
    points long.
    """
    if len(history) < min_window:
        return StabilityAssessment(
            stable=False,
            reason="insufficient data",
            stability_threshold=threshold,
        )

    window = max(min_window, math.floor(len(history) * window_fraction))
    recent = deviation_series(history[-window:], theoretical)

    return StabilityAssessment(
        stable=all(dev <= threshold for dev in recent),
        recent_deviations=recent,
        average_recent_deviation=float(np.mean(recent)),
        stability_threshold=threshold,
        games_analyzed=window,
    )


def find_milestones(
    history: Sequence[WinRatePoint],
    theoretical: float,
    thresholds: Sequence[float] = (0.10, 0.05, 0.01),
    streak_threshold: float = 0.05,
) -> ConvergenceMilestones:
    """Single pass over the history.

    Records the first game number within each threshold, the longest run
    of consecutive points within *streak_threshold* and the worst
    deviation seen.
    """
    first_within: dict[str, int | None] = {_threshold_key(t): None for t in thresholds}
    longest = StableStreak()
    worst = WorstDeviation()

    streak_len = 0
    streak_start: int | None = None
    previous: WinRatePoint | None = None

    for point in history:
        deviation = abs(point.win_rate - theoretical)

        for threshold in thresholds:
            key = _threshold_key(threshold)
            if first_within[key] is None and deviation <= threshold:
                first_within[key] = point.game_number

        if deviation > worst.deviation:
            worst = WorstDeviation(
                game_number=point.game_number,
                deviation=deviation,
                win_rate=point.win_rate,
            )

        if deviation <= streak_threshold:
            if streak_len == 0:
                streak_start = point.game_number
            streak_len += 1
        else:
            if streak_len > longest.length and previous is not None:
                longest = StableStreak(
                    start=streak_start, end=previous.game_number, length=streak_len,
                )
            streak_len = 0

        previous = point

    if streak_len > longest.length and previous is not None:
        longest = StableStreak(start=streak_start, end=previous.game_number, length=streak_len)

    return ConvergenceMilestones(
        first_within=first_within,
        longest_stable_streak=longest,
        worst_deviation=worst,
    )


def _threshold_key(threshold: float) -> str:
    return f"{threshold:g}"
