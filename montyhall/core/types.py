"""Domain types for the three-door game, batch runs and their statistics."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DOORS: tuple[int, ...] = (0, 1, 2)


class Strategy(StrEnum):
    """Decision made after the host opens a goat door."""

    STAY = "stay"
    SWITCH = "switch"


THEORETICAL_WIN_RATES: dict[Strategy, float] = {
    Strategy.STAY: 1 / 3,
    Strategy.SWITCH: 2 / 3,
}


class RunState(StrEnum):
    """Lifecycle state of a BatchRunner."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


# ── Trial Types ──────────────────────────────────────────────────


class Trial(BaseModel):
    """Outcome of one simulated game. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    strategy: Strategy
    player_choice: int
    host_revealed_door: int
    final_choice: int
    car_door: int
    won: bool


class WinRatePoint(BaseModel):
    """Cumulative win rate after ``game_number`` trials."""

    model_config = ConfigDict(frozen=True)

    game_number: int
    win_rate: float
    cumulative_wins: int


class StrategyBatch(BaseModel):
    """All trials and the running win rate for one strategy in one run."""

    strategy: Strategy
    played: int = 0
    won: int = 0
    trials: list[Trial] = Field(default_factory=list)
    win_rate_history: list[WinRatePoint] = Field(default_factory=list)

    @property
    def losses(self) -> int:
        """Games played that were not won."""
        return self.played - self.won

    @property
    def win_rate(self) -> float:
        """Fraction of played games won, 0.0 before any game."""
        if self.played == 0:
            return 0.0
        return self.won / self.played


# ── Runner Types ─────────────────────────────────────────────────


class ConvergencePoint(BaseModel):
    """Win rate sampled at a chunk boundary, paired with its target."""

    model_config = ConfigDict(frozen=True)

    game_number: int
    strategy: Strategy
    win_rate: float
    cumulative_wins: int
    theoretical: float


class ProgressEvent(BaseModel):
    """Progress report delivered after every chunk."""

    model_config = ConfigDict(frozen=True)

    completed: int
    total: int
    percentage: float
    strategy: Strategy


# ── Analysis Types ───────────────────────────────────────────────


class SampleAdequacy(StrEnum):
    """How a sample size compares to the sizes needed for 5% / 1% margins."""

    INSUFFICIENT = "insufficient"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


class ConfidenceInterval(BaseModel):
    """Wald interval for a proportion, clipped to [0, 1]."""

    confidence: float = 0.95
    lower: float
    upper: float
    margin_of_error: float
    standard_error: float
    contains_theoretical: bool | None = None


class HypothesisTest(BaseModel):
    """Two-tailed one-proportion z-test against the theoretical rate."""

    null_hypothesis: str
    alternative_hypothesis: str
    z_score: float
    p_value: float
    significance_level: float = 0.05
    reject_null: bool

    @property
    def significant(self) -> bool:
        """Alias for reject_null."""
        return self.reject_null


class SampleSizeAssessment(BaseModel):
    actual: int
    required_for_5_percent: int
    required_for_1_percent: int
    adequate: bool
    adequacy: SampleAdequacy
    current_precision: float
    power_analysis: int


class DescriptiveStats(BaseModel):
    """Observed vs. theoretical win rate for one strategy."""

    total_games: int
    wins: int
    losses: int
    observed_win_rate: float
    theoretical_win_rate: float
    absolute_deviation: float
    relative_deviation: float
    percent_deviation: float
    accuracy: float
    within_expected_range: bool


class StrategyComparison(BaseModel):
    """Switch vs. stay, only produced when both strategies ran."""

    switch_advantage: float
    switch_advantage_percent: float | None
    theoretical_advantage: float
    advantage_accuracy: float
    correct_relationship: bool


class InferentialStats(BaseModel):
    confidence_intervals: dict[str, ConfidenceInterval] = Field(default_factory=dict)
    hypothesis_test: HypothesisTest
    sample_size: SampleSizeAssessment


class ConvergenceMeasure(BaseModel):
    deviations: list[float] = Field(default_factory=list)
    final_deviation: float
    max_deviation: float
    min_deviation: float
    average_deviation: float
    convergence_rate: float
    is_converging: bool
    stability_score: float


class StabilityAssessment(BaseModel):
    stable: bool
    reason: str = ""
    recent_deviations: list[float] = Field(default_factory=list)
    average_recent_deviation: float | None = None
    stability_threshold: float = 0.05
    games_analyzed: int = 0


class StableStreak(BaseModel):
    start: int | None = None
    end: int | None = None
    length: int = 0


class WorstDeviation(BaseModel):
    game_number: int | None = None
    deviation: float = 0.0
    win_rate: float | None = None


class ConvergenceMilestones(BaseModel):
    """First game numbers where deviation fell within each threshold."""

    first_within: dict[str, int | None] = Field(default_factory=dict)
    longest_stable_streak: StableStreak = Field(default_factory=StableStreak)
    worst_deviation: WorstDeviation = Field(default_factory=WorstDeviation)

    @property
    def first_within_10_percent(self) -> int | None:
        """First game number within 10 points of theory."""
        return self.first_within.get("0.1")

    @property
    def first_within_5_percent(self) -> int | None:
        """First game number within 5 points of theory."""
        return self.first_within.get("0.05")

    @property
    def first_within_1_percent(self) -> int | None:
        """First game number within 1 point of theory."""
        return self.first_within.get("0.01")


class ConvergenceForecast(BaseModel):
    """Games still needed before the 95% margin reaches 5% / 1%."""

    current_margin: float
    games_to_5_percent_margin: int
    games_to_1_percent_margin: int


class ConvergenceDiagnostics(BaseModel):
    convergence: ConvergenceMeasure
    stability: StabilityAssessment
    milestones: ConvergenceMilestones
    forecast: ConvergenceForecast


class LawOfLargeNumbersEvidence(BaseModel):
    sample_size: int
    final_deviation: float
    is_close: bool
    demonstrates_law: bool


class LawOfLargeNumbers(BaseModel):
    demonstrated: bool = False
    evidence: dict[Strategy, LawOfLargeNumbersEvidence] = Field(default_factory=dict)


class StrategyStatistics(BaseModel):
    descriptive: DescriptiveStats
    inferential: InferentialStats
    convergence: ConvergenceDiagnostics


class SimulationStatistics(BaseModel):
    """Full StatisticsEngine output for one SimulationResult."""

    per_strategy: dict[Strategy, StrategyStatistics] = Field(default_factory=dict)
    comparison: StrategyComparison | None = None
    law_of_large_numbers: LawOfLargeNumbers = Field(default_factory=LawOfLargeNumbers)
    theoretical: dict[Strategy, float] = Field(
        default_factory=lambda: dict(THEORETICAL_WIN_RATES),
    )


# ── Result ───────────────────────────────────────────────────────


class SimulationResult(BaseModel):
    """Everything produced by one BatchRunner run.

    ``statistics`` stays ``None`` until the caller attaches the output of
    ``StatisticsEngine.analyze()``.
    """

    total_games: int
    strategies: list[Strategy]
    per_strategy: dict[Strategy, StrategyBatch] = Field(default_factory=dict)
    convergence_series: list[ConvergencePoint] = Field(default_factory=list)
    state: RunState = RunState.RUNNING
    start_time: float = 0.0
    end_time: float | None = None
    duration: float | None = None
    statistics: SimulationStatistics | None = None

    @property
    def games_played(self) -> int:
        """Games played across all strategies."""
        return sum(batch.played for batch in self.per_strategy.values())

    def batch(self, strategy: Strategy | str) -> StrategyBatch:
        """Return the batch for *strategy*, raising KeyError if it did not run."""
        return self.per_strategy[Strategy(strategy)]

    def summary(self) -> dict[str, Any]:
        """Flat per-strategy totals for logging and CLI output."""
        return {
            str(strategy): {
                "played": batch.played,
                "won": batch.won,
                "win_rate": batch.win_rate,
            }
            for strategy, batch in self.per_strategy.items()
        }
