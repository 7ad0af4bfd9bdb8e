import logging
from typing import Dict, List, Optional, Any, Union

from analysis_config import AnalysisConfig
from data_preparation.records import CompanyRecord, FundingRoundRecord, VelocityPeriodRecord
from data_preparation.sample_assembler import RecordSource, SampleAssembler
from reporting.report_assembler import ReportAssembler
from reporting.report_types import AnalysisReport


logger = logging.getLogger(__name__)


class VelocityFramework:
    """Entry point: records in, one analysis report out"""

    def __init__(self, config: Union[AnalysisConfig, Dict[str, Any], None] = None):
        if isinstance(config, dict):
            config = AnalysisConfig.from_dict(config)
        self.config = config or AnalysisConfig()
        self.sample_assembler = SampleAssembler(self.config)
        self.report_assembler = ReportAssembler(self.config)

    def run_analysis(
        self,
        companies: List[CompanyRecord],
        rounds: List[FundingRoundRecord],
        periods: List[VelocityPeriodRecord]
    ) -> AnalysisReport:
        """Analyze in-memory records"""
        logger.info(
            f"Running analysis over {len(periods)} periods, {len(rounds)} rounds, "
            f"{len(companies)} companies"
        )
        sample = self.sample_assembler.assemble(periods, rounds, companies)
        return self.report_assembler.assemble(sample, total_companies=len(companies))

    async def run_analysis_async(
        self,
        periods: List[VelocityPeriodRecord],
        source: RecordSource,
        total_companies: Optional[int] = None
    ) -> AnalysisReport:
        """Analyze periods whose rounds and companies are fetched from an async source"""
        sample = await self.sample_assembler.assemble_async(periods, source)
        if total_companies is None:
            total_companies = len({p.company_id for p in periods})
        return self.report_assembler.assemble(sample, total_companies=total_companies)
