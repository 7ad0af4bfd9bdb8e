from typing import Optional, Tuple
from dataclasses import dataclass
from datetime import date
from enum import Enum


class Industry(Enum):
    DATABASE = "database"
    AI_ML = "ai/ml"
    WEB_FRONTEND = "web/frontend"
    DEVTOOLS_CLI = "devtools/cli"
    ANALYTICS_DATA = "analytics/data"
    INFRASTRUCTURE = "infrastructure"


@dataclass(frozen=True)
class CompanyRecord:
    id: int
    name: str
    repository_url: str
    exit_state: str = "none"
    exit_date: Optional[date] = None


@dataclass(frozen=True)
class FundingRoundRecord:
    id: int
    company_id: int
    round_type: str
    round_date: date
    amount_usd: Optional[float] = None


@dataclass(frozen=True)
class VelocityPeriodRecord:
    id: int
    company_id: int
    from_round_id: Optional[int]
    to_round_id: Optional[int]
    period_days: int
    tdr_change: float
    composite_velocity: float
    development_speed: float
    commit_velocity: float
    code_churn: float
    author_activity: float
    got_next_round: bool
    # Snapshot quality metrics at the end of the period, when analysed
    technical_debt_ratio: Optional[float] = None
    complexity_density: Optional[float] = None
    duplication_percent: Optional[float] = None
    issue_density: Optional[float] = None


@dataclass(frozen=True)
class Observation:
    """One velocity period between two funding events for one company"""
    company_id: int
    from_round_id: Optional[int]
    to_round_id: Optional[int]
    period_days: int
    tdr_change: float
    composite_velocity: float
    development_speed: float
    commit_velocity: float
    code_churn: float
    author_activity: float
    funding_growth_rate: float
    got_next_round: bool
    company_age_months: float
    team_size: int
    industry: Industry
    round_number: int
    technical_debt_ratio: Optional[float] = None
    complexity_density: Optional[float] = None
    duplication_percent: Optional[float] = None
    issue_density: Optional[float] = None
    is_valid: bool = True

    @property
    def interaction(self) -> float:
        return self.tdr_change * self.composite_velocity

    @property
    def quality_metrics(self) -> Optional[Tuple[float, float, float, float]]:
        metrics = (
            self.technical_debt_ratio,
            self.complexity_density,
            self.duplication_percent,
            self.issue_density,
        )
        if any(m is None for m in metrics):
            return None
        return metrics
