import logging
import numpy as np
from typing import Dict, Optional, Any, Sequence, Tuple
from dataclasses import dataclass

from analysis_config import AnalysisConfig
from data_preparation.records import Observation
from statistical_engine import index_percentile_bounds, winsorize
from statistical_analysis.regression_engine import RegressionEngine, RegressionResult


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RobustnessResult:
    log_transformed: RegressionResult
    winsorized: RegressionResult
    outlier_excluded: RegressionResult
    winsor_bounds: Tuple[float, float]
    excluded_outliers: int
    outlier_fit_reused_primary: bool
    consistent_variants: int

    @property
    def variants(self) -> Dict[str, RegressionResult]:
        return {
            'log_transformed': self.log_transformed,
            'winsorized': self.winsorized,
            'outlier_excluded': self.outlier_excluded,
        }

    def to_dict(self) -> Dict[str, Any]:
        result = {name: variant.to_dict() for name, variant in self.variants.items()}
        result.update({
            'winsor_bounds': list(self.winsor_bounds),
            'excluded_outliers': self.excluded_outliers,
            'outlier_fit_reused_primary': self.outlier_fit_reused_primary,
            'consistent_variants': self.consistent_variants,
        })
        return result


class RobustnessSuite:
    """Re-fits the moderation model under alternative outcome and sample treatments"""

    def __init__(
        self,
        regression_engine: Optional[RegressionEngine] = None,
        config: Optional[AnalysisConfig] = None
    ):
        self.config = config or AnalysisConfig()
        self.regression_engine = regression_engine or RegressionEngine(self.config)

    def run(self, observations: Sequence[Observation], primary: RegressionResult) -> RobustnessResult:
        growths = [obs.funding_growth_rate for obs in observations]

        log_result = self.regression_engine.regress_observations(
            observations, self.log_transform(growths)
        )

        winsor_bounds = index_percentile_bounds(
            growths, self.config.winsor_lower, self.config.winsor_upper
        )
        winsorized_result = self.regression_engine.regress_observations(
            observations, self.winsorize(growths)
        )

        retained = [
            obs for obs in observations
            if abs(obs.tdr_change) <= self.config.outlier_tdr_threshold
        ]
        excluded = len(observations) - len(retained)
        reused_primary = len(retained) < self.config.min_outlier_sample
        if reused_primary:
            logger.info(
                f"Only {len(retained)} rows remain after outlier exclusion; reusing primary fit"
            )
            outlier_result = primary
        else:
            outlier_result = self.regression_engine.regress_observations(retained)

        variants = (log_result, winsorized_result, outlier_result)
        consistent = sum(1 for variant in variants if self._agrees(variant, primary))

        return RobustnessResult(
            log_transformed=log_result,
            winsorized=winsorized_result,
            outlier_excluded=outlier_result,
            winsor_bounds=winsor_bounds,
            excluded_outliers=excluded,
            outlier_fit_reused_primary=reused_primary,
            consistent_variants=consistent,
        )

    def _agrees(self, variant: RegressionResult, primary: RegressionResult) -> bool:
        """Zeroed fits carry no sign and never count as agreement"""
        if not (variant.is_estimated and primary.is_estimated):
            return False
        primary_sign = np.sign(primary.interaction_coefficient)
        return primary_sign != 0 and np.sign(variant.interaction_coefficient) == primary_sign

    def log_transform(self, growths: Sequence[float]) -> list:
        """log(max(floor, y + shift)) keeps negative growth rates in the log domain"""
        return [
            float(np.log(max(self.config.log_floor, y + self.config.log_shift)))
            for y in growths
        ]

    def winsorize(self, growths: Sequence[float]) -> list:
        """Clamp at the index percentiles of the sample being regressed"""
        return winsorize(growths, self.config.winsor_lower, self.config.winsor_upper)
