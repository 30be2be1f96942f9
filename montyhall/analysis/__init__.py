"""Analysis — confidence intervals, hypothesis tests and convergence diagnostics."""

from montyhall.analysis.convergence import (
    assess_stability,
    find_milestones,
    linear_trend,
    measure_convergence,
)
from montyhall.analysis.exceptions import AnalysisError, InsufficientSampleError
from montyhall.analysis.statistics import (
    StatisticsEngine,
    assess_sample_size,
    confidence_interval,
    normal_cdf,
    required_sample_size,
    z_score_for,
    z_test,
)

__all__ = [
    "AnalysisError",
    "InsufficientSampleError",
    "StatisticsEngine",
    "assess_sample_size",
    "assess_stability",
    "confidence_interval",
    "find_milestones",
    "linear_trend",
    "measure_convergence",
    "normal_cdf",
    "required_sample_size",
    "z_score_for",
    "z_test",
]
