from typing import Dict, Any, Tuple
from dataclasses import dataclass, fields


# Hypothesis decision rule thresholds
INTERACTION_THRESHOLD = 0.05
SIGNIFICANCE_THRESHOLD = 0.10


@dataclass(frozen=True)
class AnalysisConfig:
    """Tunable parameters of the inference run"""
    min_regression_sample: int = 20
    min_analysis_sample: int = 10
    max_abs_tdr_change: float = 2.0
    funding_growth_bounds: Tuple[float, float] = (-50.0, 1000.0)
    outlier_tdr_threshold: float = 1.5
    min_outlier_sample: int = 10
    winsor_lower: float = 0.05
    winsor_upper: float = 0.95
    log_shift: float = 100.0
    log_floor: float = 0.1
    correlation_threshold: float = 0.1
    max_ranked_correlations: int = 10
    parallel_branches: bool = True
    max_fetch_concurrency: int = 16

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'AnalysisConfig':
        """Build config from a plain dictionary, rejecting unknown keys"""
        known = {f.name for f in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        values = dict(config)
        if 'funding_growth_bounds' in values:
            values['funding_growth_bounds'] = tuple(values['funding_growth_bounds'])

        result = cls(**values)
        result.validate()
        return result

    def validate(self):
        lower, upper = self.funding_growth_bounds
        if lower >= upper:
            raise ValueError("Funding growth bounds must be increasing")
        if not 0 <= self.winsor_lower < self.winsor_upper <= 1:
            raise ValueError("Winsor percentiles must satisfy 0 <= lower < upper <= 1")
        if self.min_analysis_sample < 1 or self.min_regression_sample < 1:
            raise ValueError("Minimum sample sizes must be positive")
        if self.max_fetch_concurrency < 1:
            raise ValueError("Fetch concurrency must be at least 1")
