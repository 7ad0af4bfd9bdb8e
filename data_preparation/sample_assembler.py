import asyncio
import logging
import pandas as pd
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple, Optional, Any, Iterable
from dataclasses import dataclass, asdict, replace
from datetime import date, datetime, timedelta
from math import floor

from analysis_config import AnalysisConfig
from data_preparation.records import (
    CompanyRecord,
    FundingRoundRecord,
    Industry,
    Observation,
    VelocityPeriodRecord,
)


logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30.44

# Ordered: the first keyword set matching the URL wins
INDUSTRY_KEYWORDS: List[Tuple[Industry, Tuple[str, ...]]] = [
    (Industry.DATABASE, ("database", "postgres", "mysql", "sqlite", "mongo", "redis",
                         "clickhouse", "cockroach", "sql", "db")),
    (Industry.AI_ML, ("llm", "gpt", "openai", "langchain", "neural", "machine-learning",
                      "mlops", "-ml", "ml-", "/ml", "-ai", "ai-", "/ai")),
    (Industry.WEB_FRONTEND, ("frontend", "react", "vue", "svelte", "angular", "nextjs",
                             "web", "css", "html")),
    (Industry.DEVTOOLS_CLI, ("devtool", "cli", "sdk", "lint", "terminal", "shell",
                             "editor", "debug")),
    (Industry.ANALYTICS_DATA, ("analytics", "data", "metrics", "dashboard", "etl",
                               "pipeline", "warehouse", "insight")),
]

EXCLUSION_REASONS = (
    'non_positive_velocity',
    'extreme_tdr_change',
    'funding_growth_out_of_range',
    'non_positive_company_age',
    'non_positive_team_size',
)


@dataclass(frozen=True)
class AssembledSample:
    observations: Tuple[Observation, ...]
    valid_observations: Tuple[Observation, ...]
    total_records: int
    exclusion_counts: Dict[str, int]
    # Aligned with observations; empty for valid rows
    exclusion_reasons: Tuple[Tuple[str, ...], ...] = ()

    @property
    def valid_count(self) -> int:
        return len(self.valid_observations)

    @property
    def filtered_count(self) -> int:
        return self.total_records - self.valid_count


class RecordSource(ABC):
    """Asynchronous access to upstream funding and company records"""

    @abstractmethod
    async def fetch_round(self, round_id: int) -> Optional[FundingRoundRecord]:
        pass

    @abstractmethod
    async def fetch_company(self, company_id: int) -> Optional[CompanyRecord]:
        pass

    @abstractmethod
    async def fetch_company_rounds(self, company_id: int) -> List[FundingRoundRecord]:
        pass


def classify_industry(repository_url: Optional[str]) -> Industry:
    """Keyword heuristic over the repository URL, first match wins"""
    url = (repository_url or "").lower()
    for industry, keywords in INDUSTRY_KEYWORDS:
        if any(keyword in url for keyword in keywords):
            return industry
    return Industry.INFRASTRUCTURE


def calculate_funding_growth(from_amount: Optional[float], to_amount: Optional[float]) -> float:
    from_amount = from_amount or 0
    to_amount = to_amount or 0
    if from_amount > 0:
        return (to_amount - from_amount) / from_amount * 100
    return 0.0


def _to_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _sort_rounds(rounds: Iterable[FundingRoundRecord]) -> List[FundingRoundRecord]:
    return sorted(rounds, key=lambda r: (_to_date(r.round_date), r.id))


def to_frame(observations: Iterable[Observation]) -> pd.DataFrame:
    """Flatten observations into a DataFrame for group-by passes"""
    rows = []
    for obs in observations:
        row = asdict(obs)
        row['industry'] = obs.industry.value
        row['abs_tdr_change'] = abs(obs.tdr_change)
        rows.append(row)
    return pd.DataFrame(rows)


class SampleAssembler:
    """Joins velocity periods with funding rounds and companies into observations"""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def assemble(
        self,
        periods: List[VelocityPeriodRecord],
        rounds: List[FundingRoundRecord],
        companies: List[CompanyRecord]
    ) -> AssembledSample:
        """Build the observation sample from in-memory records"""
        rounds_by_id = {r.id: r for r in rounds}
        companies_by_id = {c.id: c for c in companies}

        rounds_by_company: Dict[int, List[FundingRoundRecord]] = {}
        for funding_round in rounds:
            rounds_by_company.setdefault(funding_round.company_id, []).append(funding_round)
        rounds_by_company = {cid: _sort_rounds(rs) for cid, rs in rounds_by_company.items()}

        built = []
        for period in periods:
            built.append(self._build_observation(
                period,
                rounds_by_id.get(period.from_round_id) if period.from_round_id is not None else None,
                rounds_by_id.get(period.to_round_id) if period.to_round_id is not None else None,
                companies_by_id.get(period.company_id),
                rounds_by_company.get(period.company_id, [])
            ))

        return self._finalize(built, len(periods))

    async def assemble_async(
        self,
        periods: List[VelocityPeriodRecord],
        source: RecordSource
    ) -> AssembledSample:
        """Enrich periods concurrently; a failed fetch leaves that field absent"""
        semaphore = asyncio.Semaphore(self.config.max_fetch_concurrency)

        async def fetch(label: str, coro, default):
            async with semaphore:
                try:
                    result = await coro
                except Exception as exc:
                    logger.warning(f"Upstream fetch failed for {label}: {exc}")
                    return default
            return default if result is None else result

        async def enrich(period: VelocityPeriodRecord) -> Tuple[Observation, Tuple[str, ...]]:
            from_round, to_round, company, company_rounds = await asyncio.gather(
                fetch(f"round {period.from_round_id}", source.fetch_round(period.from_round_id), None)
                if period.from_round_id is not None else _absent(),
                fetch(f"round {period.to_round_id}", source.fetch_round(period.to_round_id), None)
                if period.to_round_id is not None else _absent(),
                fetch(f"company {period.company_id}", source.fetch_company(period.company_id), None),
                fetch(f"rounds of company {period.company_id}",
                      source.fetch_company_rounds(period.company_id), []),
            )
            return self._build_observation(
                period, from_round, to_round, company, _sort_rounds(company_rounds)
            )

        built = await asyncio.gather(*(enrich(p) for p in periods))
        return self._finalize(list(built), len(periods))

    def _build_observation(
        self,
        period: VelocityPeriodRecord,
        from_round: Optional[FundingRoundRecord],
        to_round: Optional[FundingRoundRecord],
        company: Optional[CompanyRecord],
        company_rounds: List[FundingRoundRecord]
    ) -> Tuple[Observation, Tuple[str, ...]]:
        """Observation plus the validity bounds it fails"""
        funding_growth = calculate_funding_growth(
            from_round.amount_usd if from_round else None,
            to_round.amount_usd if to_round else None
        )

        observation = Observation(
            company_id=period.company_id,
            from_round_id=period.from_round_id,
            to_round_id=period.to_round_id,
            period_days=period.period_days,
            tdr_change=period.tdr_change,
            composite_velocity=period.composite_velocity,
            development_speed=period.development_speed,
            commit_velocity=period.commit_velocity,
            code_churn=period.code_churn,
            author_activity=period.author_activity,
            funding_growth_rate=funding_growth,
            got_next_round=bool(period.got_next_round),
            company_age_months=self._company_age_months(period, from_round, to_round, company, company_rounds),
            team_size=max(1, int(floor(period.author_activity or 0))),
            industry=classify_industry(company.repository_url if company else None),
            round_number=self._round_number(to_round, company_rounds),
            technical_debt_ratio=period.technical_debt_ratio,
            complexity_density=period.complexity_density,
            duplication_percent=period.duplication_percent,
            issue_density=period.issue_density,
        )

        reasons = tuple(self._exclusion_reasons(observation))
        if reasons:
            observation = replace(observation, is_valid=False)
        return observation, reasons

    def _company_age_months(
        self,
        period: VelocityPeriodRecord,
        from_round: Optional[FundingRoundRecord],
        to_round: Optional[FundingRoundRecord],
        company: Optional[CompanyRecord],
        company_rounds: List[FundingRoundRecord]
    ) -> float:
        """Months from the company's first known activity to the period end"""
        end_date = None
        if to_round is not None:
            end_date = _to_date(to_round.round_date)
        elif company is not None and company.exit_date is not None:
            end_date = _to_date(company.exit_date)
        elif from_round is not None:
            end_date = _to_date(from_round.round_date) + timedelta(days=period.period_days)

        if end_date is None:
            return 0.0

        start_date = end_date - timedelta(days=period.period_days)
        if company_rounds:
            start_date = min(start_date, _to_date(company_rounds[0].round_date))

        return (end_date - start_date).days / DAYS_PER_MONTH

    def _round_number(
        self,
        to_round: Optional[FundingRoundRecord],
        company_rounds: List[FundingRoundRecord]
    ) -> int:
        if to_round is None:
            return len(company_rounds) + 1
        for position, funding_round in enumerate(company_rounds, start=1):
            if funding_round.id == to_round.id:
                return position
        return len(company_rounds) + 1

    def _exclusion_reasons(self, obs: Observation) -> List[str]:
        lower, upper = self.config.funding_growth_bounds
        reasons = []
        if not obs.composite_velocity > 0:
            reasons.append('non_positive_velocity')
        if not abs(obs.tdr_change) < self.config.max_abs_tdr_change:
            reasons.append('extreme_tdr_change')
        if not lower <= obs.funding_growth_rate <= upper:
            reasons.append('funding_growth_out_of_range')
        if not obs.company_age_months > 0:
            reasons.append('non_positive_company_age')
        if not obs.team_size > 0:
            reasons.append('non_positive_team_size')
        return reasons

    def _finalize(
        self,
        built: List[Tuple[Observation, Tuple[str, ...]]],
        total_records: int
    ) -> AssembledSample:
        observations = [obs for obs, _ in built]
        exclusion_counts = {reason: 0 for reason in EXCLUSION_REASONS}
        for _, reasons in built:
            for reason in reasons:
                exclusion_counts[reason] += 1

        valid = tuple(obs for obs in observations if obs.is_valid)
        logger.info(
            f"Assembled {len(observations)} observations, {len(valid)} pass validity filters"
        )
        return AssembledSample(
            observations=tuple(observations),
            valid_observations=valid,
            total_records=total_records,
            exclusion_counts=exclusion_counts,
            exclusion_reasons=tuple(reasons for _, reasons in built),
        )


async def _absent() -> None:
    return None

