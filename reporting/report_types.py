import copy
import json
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, asdict

from segmentation.correlation_ranker import RankedCorrelation
from segmentation.quantile_analyzer import QuantileBucket
from segmentation.strategic_matrix import StrategicMatrix
from statistical_analysis.regression_engine import RegressionResult
from statistical_analysis.robustness_suite import RobustnessResult


@dataclass(frozen=True)
class ReportSummary:
    total_companies: int
    total_observations: int
    valid_observations: int
    filtered_observations: int
    median_funding_growth: float
    median_period_days: float
    avg_tdr_change: float
    avg_composite_velocity: float
    funding_success_rate: float


@dataclass(frozen=True)
class DataQuality:
    total_records: int
    records_used: int
    exclusion_counts: Dict[str, int]
    filtering_reason: str


@dataclass(frozen=True)
class KeyFindings:
    primary_finding: str
    strategic_finding: str
    correlation_finding: str
    robustness_finding: str
    data_quality_note: str
    limitations: str

    def as_list(self) -> List[str]:
        return [
            self.primary_finding,
            self.strategic_finding,
            self.correlation_finding,
            self.robustness_finding,
            self.data_quality_note,
        ]


@dataclass(frozen=True)
class AnalysisReport:
    summary: ReportSummary
    data_quality: DataQuality
    strategic_matrix: StrategicMatrix
    regression: RegressionResult
    robustness: RobustnessResult
    simple_correlations: Dict[str, Dict[str, Any]]
    tdr_quartiles: List[QuantileBucket]
    velocity_quartiles: List[QuantileBucket]
    quality_quintiles: List[QuantileBucket]
    industry_breakdown: List[Dict[str, Any]]
    ranked_correlations: List[RankedCorrelation]
    key_findings: KeyFindings
    is_demo: bool = False
    export_date: Optional[str] = None
    significance_level: str = "not significant"

    @property
    def hypothesis_supported(self) -> bool:
        return self.regression.hypothesis_supported

    def to_dict(self) -> Dict[str, Any]:
        return {
            'summary': asdict(self.summary),
            'data_quality': asdict(self.data_quality),
            'strategic_matrix': self.strategic_matrix.to_dict(),
            'regression': self.regression.to_dict(),
            'robustness': self.robustness.to_dict(),
            'hypothesis_supported': self.hypothesis_supported,
            'significance_level': self.significance_level,
            'simple_correlations': copy.deepcopy(self.simple_correlations),
            'tdr_quartiles': [b.to_dict() for b in self.tdr_quartiles],
            'velocity_quartiles': [b.to_dict() for b in self.velocity_quartiles],
            'quality_quintiles': [b.to_dict() for b in self.quality_quintiles],
            'industry_breakdown': copy.deepcopy(self.industry_breakdown),
            'ranked_correlations': [c.to_dict() for c in self.ranked_correlations],
            'key_findings': asdict(self.key_findings),
            'is_demo': self.is_demo,
            'export_date': self.export_date,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)
