from typing import Dict, Any, Sequence
from dataclasses import dataclass
from enum import Enum
from functools import reduce

from data_preparation.records import Observation
from statistical_engine import median


class StrategicBucket(Enum):
    SPEED_STRATEGY = "speed_strategy"
    TECHNICAL_CHAOS = "technical_chaos"
    ENGINEERING_EXCELLENCE = "engineering_excellence"
    OVER_ENGINEERING = "over_engineering"


@dataclass(frozen=True)
class BucketSummary:
    count: int
    avg_funding_growth: float
    success_rate: float
    avg_abs_tdr_change: float
    avg_velocity: float


@dataclass(frozen=True)
class BucketAccumulator:
    count: int = 0
    funding_growth_total: float = 0.0
    successes: int = 0
    abs_tdr_total: float = 0.0
    velocity_total: float = 0.0

    def add(self, obs: Observation) -> 'BucketAccumulator':
        return BucketAccumulator(
            count=self.count + 1,
            funding_growth_total=self.funding_growth_total + obs.funding_growth_rate,
            successes=self.successes + (1 if obs.got_next_round else 0),
            abs_tdr_total=self.abs_tdr_total + abs(obs.tdr_change),
            velocity_total=self.velocity_total + obs.composite_velocity,
        )

    def summarize(self) -> BucketSummary:
        if self.count == 0:
            return BucketSummary(0, 0.0, 0.0, 0.0, 0.0)
        return BucketSummary(
            count=self.count,
            avg_funding_growth=self.funding_growth_total / self.count,
            success_rate=self.successes / self.count * 100,
            avg_abs_tdr_change=self.abs_tdr_total / self.count,
            avg_velocity=self.velocity_total / self.count,
        )


@dataclass(frozen=True)
class StrategicMatrix:
    median_abs_tdr_change: float
    median_velocity: float
    buckets: Dict[StrategicBucket, BucketSummary]

    @property
    def total(self) -> int:
        return sum(summary.count for summary in self.buckets.values())

    def best_bucket(self) -> StrategicBucket:
        """Bucket with the highest success rate among non-empty buckets"""
        populated = [b for b in StrategicBucket if self.buckets[b].count > 0]
        if not populated:
            return StrategicBucket.ENGINEERING_EXCELLENCE
        return max(populated, key=lambda b: self.buckets[b].success_rate)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'median_abs_tdr_change': self.median_abs_tdr_change,
            'median_velocity': self.median_velocity,
            'buckets': {
                bucket.value: {
                    'count': summary.count,
                    'avg_funding_growth': summary.avg_funding_growth,
                    'success_rate': summary.success_rate,
                    'avg_abs_tdr_change': summary.avg_abs_tdr_change,
                    'avg_velocity': summary.avg_velocity,
                }
                for bucket, summary in self.buckets.items()
            },
        }


class StrategicMatrixAnalyzer:
    """2x2 classification by median splits of |TDR change| and composite velocity"""

    def classify(
        self,
        obs: Observation,
        median_abs_tdr: float,
        median_velocity: float
    ) -> StrategicBucket:
        high_debt = abs(obs.tdr_change) > median_abs_tdr
        high_velocity = obs.composite_velocity > median_velocity

        if high_debt and high_velocity:
            return StrategicBucket.SPEED_STRATEGY
        elif high_debt:
            return StrategicBucket.TECHNICAL_CHAOS
        elif high_velocity:
            return StrategicBucket.ENGINEERING_EXCELLENCE
        return StrategicBucket.OVER_ENGINEERING

    def analyze(self, observations: Sequence[Observation]) -> StrategicMatrix:
        """Medians are recomputed from the sample on every call"""
        median_abs_tdr = median([abs(obs.tdr_change) for obs in observations])
        median_velocity = median([obs.composite_velocity for obs in observations])

        def fold(acc: Dict[StrategicBucket, BucketAccumulator], obs: Observation):
            bucket = self.classify(obs, median_abs_tdr, median_velocity)
            return {**acc, bucket: acc[bucket].add(obs)}

        accumulators = reduce(
            fold,
            observations,
            {bucket: BucketAccumulator() for bucket in StrategicBucket}
        )

        return StrategicMatrix(
            median_abs_tdr_change=median_abs_tdr,
            median_velocity=median_velocity,
            buckets={bucket: acc.summarize() for bucket, acc in accumulators.items()},
        )
