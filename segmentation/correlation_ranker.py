from typing import Dict, List, Any, Callable, Sequence, Tuple
from dataclasses import dataclass
from itertools import combinations
from statsmodels.stats.multitest import multipletests

from analysis_config import AnalysisConfig
from data_preparation.records import Observation
from statistical_engine import (
    correlation_p_value,
    correlation_strength,
    pearson_correlation,
    significance_label,
)


# Fixed metric order; pairs are generated in this order before ranking
RANKED_METRICS: List[Tuple[str, str, Callable[[Observation], float]]] = [
    ('tdr_change', 'TDR Change', lambda obs: obs.tdr_change),
    ('composite_velocity', 'Composite Velocity', lambda obs: obs.composite_velocity),
    ('development_speed', 'Development Speed', lambda obs: obs.development_speed),
    ('commit_velocity', 'Commit Velocity', lambda obs: obs.commit_velocity),
    ('code_churn', 'Code Churn', lambda obs: obs.code_churn),
    ('author_activity', 'Author Activity', lambda obs: obs.author_activity),
    ('period_days', 'Period Length', lambda obs: float(obs.period_days)),
    ('funding_growth_rate', 'Funding Growth', lambda obs: obs.funding_growth_rate),
    ('got_next_round', 'Next Round Success', lambda obs: 1.0 if obs.got_next_round else 0.0),
]

SIMPLE_PAIRS: List[Tuple[str, Callable[[Observation], float], Callable[[Observation], float]]] = [
    ('tdr_velocity', lambda obs: obs.tdr_change, lambda obs: obs.composite_velocity),
    ('tdr_funding', lambda obs: obs.tdr_change, lambda obs: obs.funding_growth_rate),
    ('velocity_funding', lambda obs: obs.composite_velocity, lambda obs: obs.funding_growth_rate),
    ('interaction_funding', lambda obs: obs.interaction, lambda obs: obs.funding_growth_rate),
    ('tdr_success', lambda obs: obs.tdr_change, lambda obs: 1.0 if obs.got_next_round else 0.0),
]


@dataclass(frozen=True)
class RankedCorrelation:
    metric_a: str
    metric_b: str
    label: str
    correlation: float
    strength: str
    direction: str
    p_value: float
    adjusted_p_value: float
    sample_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'metric_a': self.metric_a,
            'metric_b': self.metric_b,
            'label': self.label,
            'correlation': self.correlation,
            'strength': self.strength,
            'direction': self.direction,
            'p_value': self.p_value,
            'adjusted_p_value': self.adjusted_p_value,
            'sample_size': self.sample_size,
        }


class CorrelationRanker:
    """Pairwise Pearson correlations across a fixed metric set"""

    def __init__(self, config: AnalysisConfig = None):
        self.config = config or AnalysisConfig()

    def rank(self, observations: Sequence[Observation]) -> List[RankedCorrelation]:
        """All C(k,2) pairs, |r| above threshold, strongest first"""
        n = len(observations)
        series = {
            name: [extract(obs) for obs in observations]
            for name, _, extract in RANKED_METRICS
        }
        labels = {name: label for name, label, _ in RANKED_METRICS}

        pairs = []
        for (name_a, _, _), (name_b, _, _) in combinations(RANKED_METRICS, 2):
            r = pearson_correlation(series[name_a], series[name_b])
            pairs.append((name_a, name_b, r, correlation_p_value(r, n)))

        # Benjamini-Hochberg over the full family of pairs, not just the survivors
        _, adjusted, _, _ = multipletests([p for _, _, _, p in pairs], method='fdr_bh')

        ranked = [
            RankedCorrelation(
                metric_a=name_a,
                metric_b=name_b,
                label=f"{labels[name_a]} vs {labels[name_b]}",
                correlation=r,
                strength=correlation_strength(r),
                direction='positive' if r > 0 else 'negative',
                p_value=p_value,
                adjusted_p_value=float(adjusted_p),
                sample_size=n,
            )
            for (name_a, name_b, r, p_value), adjusted_p in zip(pairs, adjusted)
            if abs(r) > self.config.correlation_threshold
        ]
        ranked.sort(key=lambda item: abs(item.correlation), reverse=True)
        return ranked[:self.config.max_ranked_correlations]

    def simple_correlations(self, observations: Sequence[Observation]) -> Dict[str, Dict[str, Any]]:
        """Headline correlations with their p-values and significance labels"""
        n = len(observations)
        results = {}
        for name, extract_x, extract_y in SIMPLE_PAIRS:
            r = pearson_correlation(
                [extract_x(obs) for obs in observations],
                [extract_y(obs) for obs in observations]
            )
            p_value = correlation_p_value(r, n)
            results[name] = {
                'correlation': r,
                'p_value': p_value,
                'significance': significance_label(p_value),
            }
        return results
