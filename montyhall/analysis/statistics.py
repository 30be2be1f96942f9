"""StatisticsEngine — descriptive, inferential and convergence analysis.

Consumes a finished :class:`SimulationResult` and returns a
:class:`SimulationStatistics`.  Nothing here mutates its input, so two
calls on the same result produce equal output.
"""

from __future__ import annotations

import math

import structlog

from montyhall.analysis.convergence import assess_stability, find_milestones, measure_convergence
from montyhall.analysis.exceptions import AnalysisError, InsufficientSampleError
from montyhall.core.config import AnalysisConfig
from montyhall.core.types import (
    THEORETICAL_WIN_RATES,
    ConfidenceInterval,
    ConvergenceDiagnostics,
    ConvergenceForecast,
    DescriptiveStats,
    HypothesisTest,
    InferentialStats,
    LawOfLargeNumbers,
    LawOfLargeNumbersEvidence,
    SampleAdequacy,
    SampleSizeAssessment,
    SimulationResult,
    SimulationStatistics,
    Strategy,
    StrategyBatch,
    StrategyComparison,
    StrategyStatistics,
)

logger = structlog.get_logger(__name__)

Z_SCORES: dict[float, float] = {
    0.90: 1.645,
    0.95: 1.96,
    0.99: 2.576,
    0.999: 3.291,
}

DEFAULT_Z = 1.96


def z_score_for(confidence: float) -> float:
    """Two-sided critical value; unsupported levels fall back to 95%."""
    return Z_SCORES.get(confidence, DEFAULT_Z)


def normal_cdf(z: float) -> float:
    """Standard normal CDF (Zelen & Severo polynomial, |error| < 7.5e-8)."""
    t = 1.0 / (1.0 + 0.2316419 * abs(z))
    d = 0.3989423 * math.exp(-z * z / 2.0)
    tail = d * t * (
        0.3193815 + t * (-0.3565638 + t * (1.781478 + t * (-1.821256 + t * 1.330274)))
    )
    return 1.0 - tail if z > 0 else tail


def _require_sample(n: int) -> None:
    if n <= 0:
        raise InsufficientSampleError("Statistic requires at least one played game")


def confidence_interval(
    p: float,
    n: int,
    confidence: float = 0.95,
    theoretical: float | None = None,
) -> ConfidenceInterval:
    """Wald interval ``p ± z·sqrt(p(1−p)/n)`` clipped to [0, 1]."""
    _require_sample(n)
    standard_error = math.sqrt(p * (1.0 - p) / n)
    margin = z_score_for(confidence) * standard_error
    lower = max(0.0, p - margin)
    upper = min(1.0, p + margin)
    return ConfidenceInterval(
        confidence=confidence,
        lower=lower,
        upper=upper,
        margin_of_error=margin,
        standard_error=standard_error,
        contains_theoretical=(
            None if theoretical is None else lower <= theoretical <= upper
        ),
    )


def z_test(
    observed: float,
    n: int,
    expected: float,
    significance_level: float = 0.05,
) -> HypothesisTest:
    """Two-tailed one-proportion z-test of ``H0: p == expected``."""
    _require_sample(n)
    if not 0.0 < expected < 1.0:
        raise AnalysisError(f"Expected proportion must be in (0, 1), got {expected}")

    standard_error = math.sqrt(expected * (1.0 - expected) / n)
    z = (observed - expected) / standard_error
    p_value = 2.0 * (1.0 - normal_cdf(abs(z)))

    return HypothesisTest(
        null_hypothesis=f"Win rate = {expected:.3f}",
        alternative_hypothesis=f"Win rate ≠ {expected:.3f}",
        z_score=z,
        p_value=p_value,
        significance_level=significance_level,
        reject_null=p_value < significance_level,
    )


def required_sample_size(p: float, margin_of_error: float, confidence: float = 0.95) -> int:
    """Smallest n with ``z·sqrt(p(1−p)/n) <= margin_of_error``."""
    if margin_of_error <= 0:
        raise AnalysisError(f"Margin of error must be positive, got {margin_of_error}")
    z = z_score_for(confidence)
    return math.ceil(z * z * p * (1.0 - p) / (margin_of_error * margin_of_error))


def current_precision(n: int, p: float) -> float:
    """95% margin of error achieved by *n* games at proportion *p*."""
    _require_sample(n)
    return z_score_for(0.95) * math.sqrt(p * (1.0 - p) / n)


def assess_sample_size(n: int, p: float) -> SampleSizeAssessment:
    _require_sample(n)
    for_5 = required_sample_size(p, 0.05)
    for_1 = required_sample_size(p, 0.01)

    if n >= for_1:
        adequacy = SampleAdequacy.EXCELLENT
    elif n >= for_5:
        adequacy = SampleAdequacy.GOOD
    elif n >= for_5 * 0.5:
        adequacy = SampleAdequacy.FAIR
    else:
        adequacy = SampleAdequacy.INSUFFICIENT

    return SampleSizeAssessment(
        actual=n,
        required_for_5_percent=for_5,
        required_for_1_percent=for_1,
        adequate=n >= for_5,
        adequacy=adequacy,
        current_precision=current_precision(n, p),
        power_analysis=for_5,
    )


class StatisticsEngine:
    """Analyzes a completed simulation against the theoretical win rates.

    Usage::

        engine = StatisticsEngine()
        result.statistics = engine.analyze(result)
    """

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        self._config = config or AnalysisConfig()

    @property
    def config(self) -> AnalysisConfig:
        """Thresholds and confidence levels in use."""
        return self._config

    def analyze(self, result: SimulationResult) -> SimulationStatistics:
        """Full analysis for every strategy in *result*.

        Raises:
            InsufficientSampleError: a requested strategy played no games.
        """
        per_strategy: dict[Strategy, StrategyStatistics] = {}
        for strategy in result.strategies:
            batch = result.per_strategy.get(strategy)
            if batch is None or batch.played == 0:
                raise InsufficientSampleError(f"No games played for strategy {strategy}")
            per_strategy[strategy] = StrategyStatistics(
                descriptive=self.descriptive(batch),
                inferential=self.inferential(batch),
                convergence=self.convergence(batch),
            )

        stats = SimulationStatistics(
            per_strategy=per_strategy,
            comparison=self.compare(result),
            law_of_large_numbers=self.law_of_large_numbers(result),
        )
        logger.info(
            "analysis_completed",
            strategies=[str(s) for s in per_strategy],
            games_played=result.games_played,
        )
        return stats

    # ── Descriptive ──────────────────────────────────────────────

    def descriptive(self, batch: StrategyBatch) -> DescriptiveStats:
        _require_sample(batch.played)
        theoretical = THEORETICAL_WIN_RATES[batch.strategy]
        observed = batch.win_rate
        deviation = abs(observed - theoretical)
        expected_range = confidence_interval(theoretical, batch.played, 0.95)

        return DescriptiveStats(
            total_games=batch.played,
            wins=batch.won,
            losses=batch.losses,
            observed_win_rate=observed,
            theoretical_win_rate=theoretical,
            absolute_deviation=deviation,
            relative_deviation=deviation / theoretical,
            percent_deviation=deviation * 100,
            accuracy=1.0 - deviation / theoretical,
            within_expected_range=expected_range.lower <= observed <= expected_range.upper,
        )

    def compare(self, result: SimulationResult) -> StrategyComparison | None:
        """Switch-vs-stay comparison, or None unless both strategies ran."""
        stay = result.per_strategy.get(Strategy.STAY)
        switch = result.per_strategy.get(Strategy.SWITCH)
        if stay is None or switch is None or not stay.played or not switch.played:
            return None

        advantage = switch.win_rate - stay.win_rate
        theoretical_advantage = (
            THEORETICAL_WIN_RATES[Strategy.SWITCH] - THEORETICAL_WIN_RATES[Strategy.STAY]
        )
        return StrategyComparison(
            switch_advantage=advantage,
            switch_advantage_percent=(
                advantage / stay.win_rate * 100 if stay.win_rate > 0 else None
            ),
            theoretical_advantage=theoretical_advantage,
            advantage_accuracy=abs(advantage - theoretical_advantage),
            correct_relationship=switch.win_rate > stay.win_rate,
        )

    # ── Inferential ──────────────────────────────────────────────

    def inferential(self, batch: StrategyBatch) -> InferentialStats:
        theoretical = THEORETICAL_WIN_RATES[batch.strategy]
        intervals = {
            f"ci{confidence * 100:g}": confidence_interval(
                batch.win_rate, batch.played, confidence, theoretical,
            )
            for confidence in self._config.confidence_levels
        }
        return InferentialStats(
            confidence_intervals=intervals,
            hypothesis_test=z_test(
                batch.win_rate,
                batch.played,
                theoretical,
                self._config.significance_level,
            ),
            sample_size=assess_sample_size(batch.played, theoretical),
        )

    # ── Convergence ──────────────────────────────────────────────

    def convergence(self, batch: StrategyBatch) -> ConvergenceDiagnostics:
        cfg = self._config
        theoretical = THEORETICAL_WIN_RATES[batch.strategy]
        history = batch.win_rate_history

        return ConvergenceDiagnostics(
            convergence=measure_convergence(history, theoretical),
            stability=assess_stability(
                history,
                theoretical,
                threshold=cfg.stability_threshold,
                window_fraction=cfg.stability_window_fraction,
                min_window=cfg.min_stability_window,
            ),
            milestones=find_milestones(
                history,
                theoretical,
                thresholds=cfg.milestone_thresholds,
                streak_threshold=cfg.stability_threshold,
            ),
            forecast=self.forecast(batch.played, theoretical),
        )

    def forecast(self, played: int, theoretical: float) -> ConvergenceForecast:
        return ConvergenceForecast(
            current_margin=current_precision(played, theoretical),
            games_to_5_percent_margin=max(0, required_sample_size(theoretical, 0.05) - played),
            games_to_1_percent_margin=max(0, required_sample_size(theoretical, 0.01) - played),
        )

    def law_of_large_numbers(self, result: SimulationResult) -> LawOfLargeNumbers:
        cfg = self._config
        evidence: dict[Strategy, LawOfLargeNumbersEvidence] = {}
        for strategy in result.strategies:
            batch = result.per_strategy.get(strategy)
            if batch is None or batch.played < cfg.lln_min_games:
                continue
            deviation = abs(batch.win_rate - THEORETICAL_WIN_RATES[strategy])
            is_close = deviation < cfg.lln_close_threshold
            evidence[strategy] = LawOfLargeNumbersEvidence(
                sample_size=batch.played,
                final_deviation=deviation,
                is_close=is_close,
                demonstrates_law=is_close and batch.played >= cfg.lln_demonstration_games,
            )

        return LawOfLargeNumbers(
            demonstrated=any(e.is_close for e in evidence.values()),
            evidence=evidence,
        )
