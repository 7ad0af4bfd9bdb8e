import copy
import logging
from typing import Dict, List, Optional, Any, Sequence, Tuple
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from analysis_config import AnalysisConfig
from data_preparation.records import Observation
from data_preparation.sample_assembler import AssembledSample
from reporting.demo_report import DEMO_REPORT
from reporting.report_types import AnalysisReport, DataQuality, KeyFindings, ReportSummary
from segmentation.correlation_ranker import CorrelationRanker, RankedCorrelation
from segmentation.quantile_analyzer import QuantileAnalyzer
from segmentation.strategic_matrix import StrategicMatrix, StrategicMatrixAnalyzer
from statistical_analysis.regression_engine import RegressionEngine, RegressionResult
from statistical_analysis.robustness_suite import RobustnessResult, RobustnessSuite
from statistical_engine import mean, median, remove_outliers, significance_label


logger = logging.getLogger(__name__)

HYPOTHESIS_SUPPORTED_TEMPLATE = (
    "Development velocity moderates the funding impact of technical-debt change "
    "(interaction={interaction:.3f}, p={p_value:.3f}, n={n})."
)
HYPOTHESIS_NOT_SUPPORTED_TEMPLATE = (
    "No reliable evidence that development velocity moderates the funding impact of "
    "technical-debt change (interaction={interaction:.3f}, p={p_value:.3f}, n={n})."
)
STRATEGIC_TEMPLATE = (
    "The {bucket} quadrant shows the highest next-round success rate "
    "({rate:.1f}% across {count} periods)."
)
CORRELATION_TEMPLATE = "Strongest relationship: {label} (r={r:.3f}, {strength})."
NO_CORRELATION_TEMPLATE = "No metric pair shows a correlation above the reporting threshold."
ROBUSTNESS_TEMPLATE = (
    "{consistent} of {total} robustness variants preserve the sign of the interaction effect."
)
ROBUSTNESS_NOT_ESTIMABLE_TEMPLATE = (
    "Robustness checks not estimable: the moderation model needs at least {minimum} "
    "valid observations (got {n})."
)
DATA_QUALITY_TEMPLATE = (
    "Analysis based on {valid} valid observations out of {total} records "
    "({filtered_pct:.1f}% filtered)."
)
LIMITATIONS = (
    "Sample limited to open-source ventures; technical-debt ratios depend on static-analysis "
    "effort estimates; survivorship bias in funded companies."
)
FILTERING_REASON = (
    "Required composite velocity > 0, |TDR change| < {max_tdr}, funding growth within "
    "[{growth_low:g}%, {growth_high:g}%], positive company age and team size"
)


class ReportAssembler:
    """Runs the inference and segmentation branches and packages one report"""

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        regression_engine: Optional[RegressionEngine] = None,
        robustness_suite: Optional[RobustnessSuite] = None
    ):
        self.config = config or AnalysisConfig()
        self.regression_engine = regression_engine or RegressionEngine(self.config)
        self.robustness_suite = robustness_suite or RobustnessSuite(self.regression_engine, self.config)
        self.strategic_analyzer = StrategicMatrixAnalyzer()
        self.quantile_analyzer = QuantileAnalyzer()
        self.correlation_ranker = CorrelationRanker(self.config)

    def assemble(self, sample: AssembledSample, total_companies: int) -> AnalysisReport:
        if sample.total_records == 0 or sample.valid_count < self.config.min_analysis_sample:
            logger.warning(
                f"Only {sample.valid_count} valid observations of {sample.total_records}; "
                "serving demo report"
            )
            # DEMO_REPORT itself is never handed out
            return copy.deepcopy(DEMO_REPORT)

        valid = list(sample.valid_observations)
        descriptive = list(sample.observations)

        if self.config.parallel_branches:
            with ThreadPoolExecutor(max_workers=2) as executor:
                inference_future = executor.submit(self._run_inference, valid)
                segmentation_future = executor.submit(self._run_segmentation, valid, descriptive)
                regression, robustness = inference_future.result()
                segmentation = segmentation_future.result()
        else:
            regression, robustness = self._run_inference(valid)
            segmentation = self._run_segmentation(valid, descriptive)

        strategic_matrix = segmentation['strategic_matrix']
        ranked = segmentation['ranked_correlations']

        return AnalysisReport(
            summary=self._build_summary(valid, sample, total_companies),
            data_quality=self._build_data_quality(sample),
            strategic_matrix=strategic_matrix,
            regression=regression,
            robustness=robustness,
            simple_correlations=segmentation['simple_correlations'],
            tdr_quartiles=segmentation['tdr_quartiles'],
            velocity_quartiles=segmentation['velocity_quartiles'],
            quality_quintiles=segmentation['quality_quintiles'],
            industry_breakdown=segmentation['industry_breakdown'],
            ranked_correlations=ranked,
            key_findings=self._generate_key_findings(
                regression, robustness, strategic_matrix, ranked, sample
            ),
            is_demo=False,
            export_date=datetime.now().isoformat(),
            significance_level=significance_label(regression.p_value),
        )

    def _run_inference(self, observations: List[Observation]) -> Tuple[RegressionResult, RobustnessResult]:
        regression = self.regression_engine.regress_observations(observations)
        robustness = self.robustness_suite.run(observations, regression)
        return regression, robustness

    def _run_segmentation(
        self,
        observations: List[Observation],
        descriptive: List[Observation]
    ) -> Dict[str, Any]:
        return {
            'strategic_matrix': self.strategic_analyzer.analyze(observations),
            'tdr_quartiles': self.quantile_analyzer.quartiles(observations, 'tdr_change'),
            'velocity_quartiles': self.quantile_analyzer.quartiles(observations, 'composite_velocity'),
            'quality_quintiles': self.quantile_analyzer.quality_quintiles(observations),
            'industry_breakdown': self.quantile_analyzer.industry_breakdown(observations),
            'simple_correlations': self.correlation_ranker.simple_correlations(observations),
            # Pairwise ranking is descriptive and includes rows failing the inferential bounds
            'ranked_correlations': self.correlation_ranker.rank(descriptive),
        }

    def _build_summary(
        self,
        valid: Sequence[Observation],
        sample: AssembledSample,
        total_companies: int
    ) -> ReportSummary:
        growths = [obs.funding_growth_rate for obs in valid]
        successes = sum(1 for obs in valid if obs.got_next_round)
        return ReportSummary(
            total_companies=total_companies,
            total_observations=sample.total_records,
            valid_observations=len(valid),
            filtered_observations=sample.filtered_count,
            median_funding_growth=median(remove_outliers(growths)),
            median_period_days=median([obs.period_days for obs in valid]),
            avg_tdr_change=mean([obs.tdr_change for obs in valid]),
            avg_composite_velocity=mean([obs.composite_velocity for obs in valid]),
            funding_success_rate=successes / len(valid) * 100 if valid else 0.0,
        )

    def _build_data_quality(self, sample: AssembledSample) -> DataQuality:
        growth_low, growth_high = self.config.funding_growth_bounds
        return DataQuality(
            total_records=sample.total_records,
            records_used=sample.valid_count,
            exclusion_counts=dict(sample.exclusion_counts),
            filtering_reason=FILTERING_REASON.format(
                max_tdr=self.config.max_abs_tdr_change,
                growth_low=growth_low,
                growth_high=growth_high,
            ),
        )

    def _generate_key_findings(
        self,
        regression: RegressionResult,
        robustness: RobustnessResult,
        strategic_matrix: StrategicMatrix,
        ranked: List[RankedCorrelation],
        sample: AssembledSample
    ) -> KeyFindings:
        template = (HYPOTHESIS_SUPPORTED_TEMPLATE if regression.hypothesis_supported
                    else HYPOTHESIS_NOT_SUPPORTED_TEMPLATE)
        primary = template.format(
            interaction=regression.interaction_coefficient,
            p_value=regression.p_value,
            n=regression.sample_size,
        )

        best = strategic_matrix.best_bucket()
        best_summary = strategic_matrix.buckets[best]
        strategic = STRATEGIC_TEMPLATE.format(
            bucket=best.value.replace('_', ' ').title(),
            rate=best_summary.success_rate,
            count=best_summary.count,
        )

        if ranked:
            top = ranked[0]
            correlation = CORRELATION_TEMPLATE.format(
                label=top.label, r=top.correlation, strength=top.strength
            )
        else:
            correlation = NO_CORRELATION_TEMPLATE

        if regression.is_estimated:
            robustness_finding = ROBUSTNESS_TEMPLATE.format(
                consistent=robustness.consistent_variants,
                total=len(robustness.variants),
            )
        else:
            robustness_finding = ROBUSTNESS_NOT_ESTIMABLE_TEMPLATE.format(
                minimum=self.config.min_regression_sample,
                n=regression.sample_size,
            )

        filtered_pct = sample.filtered_count / sample.total_records * 100 if sample.total_records else 0.0
        data_quality_note = DATA_QUALITY_TEMPLATE.format(
            valid=sample.valid_count,
            total=sample.total_records,
            filtered_pct=filtered_pct,
        )

        return KeyFindings(
            primary_finding=primary,
            strategic_finding=strategic,
            correlation_finding=correlation,
            robustness_finding=robustness_finding,
            data_quality_note=data_quality_note,
            limitations=LIMITATIONS,
        )
