from typing import Dict, List, Any, Callable, Sequence, TypeVar, Union
from dataclasses import dataclass

from data_preparation.records import Observation
from data_preparation.sample_assembler import to_frame
from statistical_engine import mean


T = TypeVar('T')

QUINTILE_LABELS = [
    "Highest Quality",
    "High Quality",
    "Medium Quality",
    "Low Quality",
    "Lowest Quality",
]

# Caps for technical debt ratio, complexity density, duplication %, issue density
QUALITY_CAPS = (2.0, 100.0, 50.0, 200.0)

QUARTILE_METRICS: Dict[str, Callable[[Observation], float]] = {
    'tdr_change': lambda obs: obs.tdr_change,
    'abs_tdr_change': lambda obs: abs(obs.tdr_change),
    'composite_velocity': lambda obs: obs.composite_velocity,
    'development_speed': lambda obs: obs.development_speed,
    'funding_growth_rate': lambda obs: obs.funding_growth_rate,
}


@dataclass(frozen=True)
class QuantileBucket:
    label: str
    count: int
    avg_metric: float
    avg_funding_growth: float
    avg_velocity: float
    success_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'label': self.label,
            'count': self.count,
            'avg_metric': self.avg_metric,
            'avg_funding_growth': self.avg_funding_growth,
            'avg_velocity': self.avg_velocity,
            'success_rate': self.success_rate,
        }


def composite_quality_score(
    technical_debt_ratio: float,
    complexity_density: float,
    duplication_percent: float,
    issue_density: float
) -> float:
    """Mean of capped, normalized sub-scores in [0, 1]; lower is better"""
    values = (technical_debt_ratio, complexity_density, duplication_percent, issue_density)
    sub_scores = [max(0.0, min(value, cap)) / cap for value, cap in zip(values, QUALITY_CAPS)]
    return sum(sub_scores) / len(sub_scores)


def split_quartiles(items: Sequence[T]) -> List[List[T]]:
    """Index-proportional split: item i goes to bucket floor(i / n * 4)"""
    n = len(items)
    buckets: List[List[T]] = [[] for _ in range(4)]
    for i, item in enumerate(items):
        buckets[i * 4 // n].append(item)
    return buckets


def split_quintiles(items: Sequence[T]) -> List[List[T]]:
    """Fixed-size slices of n // 5; the last slice keeps the remainder"""
    size = len(items) // 5
    return [
        list(items[i * size:(i + 1) * size]) if i < 4 else list(items[4 * size:])
        for i in range(5)
    ]


class QuantileAnalyzer:
    """Positional bucketing of the live sample"""

    def quartiles(
        self,
        observations: Sequence[Observation],
        metric: Union[str, Callable[[Observation], float]]
    ) -> List[QuantileBucket]:
        key = QUARTILE_METRICS[metric] if isinstance(metric, str) else metric
        if not observations:
            return []

        # sorted() is stable, ties keep input order
        ordered = sorted(observations, key=key)
        return [
            self._summarize(f"Q{i + 1}", bucket, key)
            for i, bucket in enumerate(split_quartiles(ordered))
        ]

    def quality_quintiles(self, observations: Sequence[Observation]) -> List[QuantileBucket]:
        scored = [
            (composite_quality_score(*obs.quality_metrics), obs)
            for obs in observations
            if obs.quality_metrics is not None
        ]
        if len(scored) < len(QUINTILE_LABELS):
            return []

        ordered = sorted(scored, key=lambda pair: pair[0])
        return [
            QuantileBucket(
                label=label,
                count=len(bucket),
                avg_metric=mean([score for score, _ in bucket]),
                avg_funding_growth=mean([obs.funding_growth_rate for _, obs in bucket]),
                avg_velocity=mean([obs.composite_velocity for _, obs in bucket]),
                success_rate=self._success_rate([obs for _, obs in bucket]),
            )
            for label, bucket in zip(QUINTILE_LABELS, split_quintiles(ordered))
        ]

    def industry_breakdown(self, observations: Sequence[Observation]) -> List[Dict[str, Any]]:
        """Per-industry counts and means, largest industry first"""
        if not observations:
            return []

        frame = to_frame(observations)
        grouped = frame.groupby('industry', sort=False).agg(
            count=('company_id', 'size'),
            avg_abs_tdr_change=('abs_tdr_change', 'mean'),
            avg_velocity=('composite_velocity', 'mean'),
            avg_funding_growth=('funding_growth_rate', 'mean'),
            success_rate=('got_next_round', 'mean'),
        ).reset_index()
        grouped['success_rate'] = grouped['success_rate'].astype(float) * 100
        grouped = grouped.sort_values('count', ascending=False, kind='mergesort')

        return [
            {
                'industry': row['industry'],
                'count': int(row['count']),
                'avg_abs_tdr_change': float(row['avg_abs_tdr_change']),
                'avg_velocity': float(row['avg_velocity']),
                'avg_funding_growth': float(row['avg_funding_growth']),
                'success_rate': float(row['success_rate']),
            }
            for _, row in grouped.iterrows()
        ]

    def _summarize(
        self,
        label: str,
        bucket: List[Observation],
        key: Callable[[Observation], float]
    ) -> QuantileBucket:
        return QuantileBucket(
            label=label,
            count=len(bucket),
            avg_metric=mean([key(obs) for obs in bucket]),
            avg_funding_growth=mean([obs.funding_growth_rate for obs in bucket]),
            avg_velocity=mean([obs.composite_velocity for obs in bucket]),
            success_rate=self._success_rate(bucket),
        )

    def _success_rate(self, bucket: List[Observation]) -> float:
        if not bucket:
            return 0.0
        return sum(1 for obs in bucket if obs.got_next_round) / len(bucket) * 100
