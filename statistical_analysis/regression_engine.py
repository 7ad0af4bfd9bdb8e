import logging
import numpy as np
from typing import Dict, List, Optional, Any, Sequence, Tuple
from dataclasses import dataclass, field
from math import sqrt

from analysis_config import AnalysisConfig, INTERACTION_THRESHOLD, SIGNIFICANCE_THRESHOLD
from data_preparation.records import Observation
from statistical_engine import two_tailed_p_value
from statistical_analysis.matrix_kernel import (
    invert,
    matrix_vector_multiply,
    multiply,
    transpose,
)


logger = logging.getLogger(__name__)

BASE_COLUMNS = [
    'intercept',
    'tdr_change',
    'velocity',
    'tdr_x_velocity',
    'log_company_age',
    'log_team_size',
    'round_number',
]
TDR_INDEX = 1
VELOCITY_INDEX = 2
INTERACTION_INDEX = 3


@dataclass(frozen=True)
class ControlVariables:
    company_age_months: float
    team_size: float
    round_number: int
    industry: Any

    @classmethod
    def from_observation(cls, obs: Observation) -> 'ControlVariables':
        return cls(
            company_age_months=obs.company_age_months,
            team_size=obs.team_size,
            round_number=obs.round_number,
            industry=obs.industry,
        )


@dataclass(frozen=True)
class RegressionResult:
    tdr_coefficient: float
    velocity_coefficient: float
    interaction_coefficient: float
    r_squared: float
    p_value: float
    sample_size: int
    degrees_of_freedom: int = 0
    coefficients: List[float] = field(default_factory=list)
    standard_errors: List[float] = field(default_factory=list)
    t_statistics: List[float] = field(default_factory=list)
    column_names: List[str] = field(default_factory=list)

    @property
    def hypothesis_supported(self) -> bool:
        return (self.interaction_coefficient > INTERACTION_THRESHOLD
                and self.p_value < SIGNIFICANCE_THRESHOLD)

    @property
    def is_estimated(self) -> bool:
        return len(self.standard_errors) > 0

    @classmethod
    def insufficient(cls, sample_size: int) -> 'RegressionResult':
        """Zeroed result carrying no evidence"""
        return cls(
            tdr_coefficient=0.0,
            velocity_coefficient=0.0,
            interaction_coefficient=0.0,
            r_squared=0.0,
            p_value=1.0,
            sample_size=sample_size,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tdr_coefficient': self.tdr_coefficient,
            'velocity_coefficient': self.velocity_coefficient,
            'interaction_coefficient': self.interaction_coefficient,
            'r_squared': self.r_squared,
            'p_value': self.p_value,
            'sample_size': self.sample_size,
            'degrees_of_freedom': self.degrees_of_freedom,
            'hypothesis_supported': self.hypothesis_supported,
            'coefficients': dict(zip(self.column_names, self.coefficients)),
            'standard_errors': dict(zip(self.column_names, self.standard_errors)),
            't_statistics': dict(zip(self.column_names, self.t_statistics)),
        }


class CategoricalEncoder:
    """Maps categories to dummy columns in first-seen order"""

    def __init__(self, values: Sequence[Any]):
        self.categories: List[Any] = []
        for value in values:
            if value not in self.categories:
                self.categories.append(value)

    def encode(self, value: Any) -> List[float]:
        return [1.0 if value == category else 0.0 for category in self.categories]

    @property
    def column_names(self) -> List[str]:
        return [f"industry[{getattr(c, 'value', c)}]" for c in self.categories]


class RegressionEngine:
    """OLS moderation model: funding growth on TDR change, velocity and their interaction"""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def regress(
        self,
        tdr_changes: Sequence[float],
        velocities: Sequence[float],
        funding_growths: Sequence[float],
        controls: Sequence[ControlVariables]
    ) -> RegressionResult:
        """Fit the moderation model via the normal equations"""
        n = len(funding_growths)
        if not len(tdr_changes) == len(velocities) == len(controls) == n:
            logger.warning("Regression inputs have mismatched lengths; returning empty result")
            return RegressionResult.insufficient(n)

        if n < self.config.min_regression_sample:
            logger.info(
                f"Sample of {n} below regression minimum of {self.config.min_regression_sample}"
            )
            return RegressionResult.insufficient(n)

        design, column_names = self.build_design_matrix(tdr_changes, velocities, controls)
        p = design.shape[1]
        df = n - p
        if df <= 0:
            logger.warning(f"No residual degrees of freedom ({n} rows, {p} columns)")
            return RegressionResult.insufficient(n)

        y = np.asarray(funding_growths, dtype=float)

        # beta = (X'X)^-1 X'y
        design_t = transpose(design)
        xtx_inv = invert(multiply(design_t, design))
        beta = matrix_vector_multiply(xtx_inv, matrix_vector_multiply(design_t, y))

        residuals = y - matrix_vector_multiply(design, beta)
        rss = float(np.sum(residuals ** 2))
        mse = rss / df

        # abs() absorbs tiny negative variances from near-singular inverses
        standard_errors = [sqrt(mse * abs(xtx_inv[i, i])) for i in range(p)]
        t_statistics = [
            float(beta[i]) / se if se != 0 else 0.0
            for i, se in enumerate(standard_errors)
        ]
        p_value = two_tailed_p_value(t_statistics[INTERACTION_INDEX], df)

        tss = float(np.sum((y - y.mean()) ** 2))
        r_squared = max(0.0, 1 - rss / tss) if tss > 0 else 0.0

        logger.debug(
            f"Regression fit: n={n}, p={p}, interaction={beta[INTERACTION_INDEX]:.4f}, "
            f"p_value={p_value:.4f}, r_squared={r_squared:.4f}"
        )

        return RegressionResult(
            tdr_coefficient=float(beta[TDR_INDEX]),
            velocity_coefficient=float(beta[VELOCITY_INDEX]),
            interaction_coefficient=float(beta[INTERACTION_INDEX]),
            r_squared=r_squared,
            p_value=p_value,
            sample_size=n,
            degrees_of_freedom=df,
            coefficients=[float(b) for b in beta],
            standard_errors=standard_errors,
            t_statistics=t_statistics,
            column_names=column_names,
        )

    def regress_observations(
        self,
        observations: Sequence[Observation],
        funding_growths: Optional[Sequence[float]] = None
    ) -> RegressionResult:
        """Fit the model on observations, optionally with a substitute dependent variable"""
        if funding_growths is None:
            funding_growths = [obs.funding_growth_rate for obs in observations]
        return self.regress(
            [obs.tdr_change for obs in observations],
            [obs.composite_velocity for obs in observations],
            funding_growths,
            [ControlVariables.from_observation(obs) for obs in observations],
        )

    def build_design_matrix(
        self,
        tdr_changes: Sequence[float],
        velocities: Sequence[float],
        controls: Sequence[ControlVariables]
    ) -> Tuple[np.ndarray, List[str]]:
        """Rows of [1, tdr, velocity, tdr*velocity, log(age+1), log(team+1), round, dummies...]"""
        encoder = CategoricalEncoder([c.industry for c in controls])

        rows = []
        for tdr, velocity, control in zip(tdr_changes, velocities, controls):
            rows.append([
                1.0,
                tdr,
                velocity,
                tdr * velocity,
                np.log(control.company_age_months + 1),
                np.log(control.team_size + 1),
                float(control.round_number),
            ] + encoder.encode(control.industry))

        return np.array(rows, dtype=float), BASE_COLUMNS + encoder.column_names
