"""Fixed report served when the sample cannot support inference.

The figures are a canned illustration of the report layout, not a
computation. Dashboards render it with an is_demo banner.
"""

from reporting.report_types import AnalysisReport, DataQuality, KeyFindings, ReportSummary
from segmentation.correlation_ranker import RankedCorrelation
from segmentation.quantile_analyzer import QuantileBucket
from segmentation.strategic_matrix import BucketSummary, StrategicBucket, StrategicMatrix
from statistical_analysis.regression_engine import BASE_COLUMNS, RegressionResult
from statistical_analysis.robustness_suite import RobustnessResult


_DEMO_COLUMNS = BASE_COLUMNS + ['industry[infrastructure]', 'industry[database]']

_DEMO_REGRESSION = RegressionResult(
    tdr_coefficient=-18.42,
    velocity_coefficient=6.31,
    interaction_coefficient=0.087,
    r_squared=0.184,
    p_value=0.072,
    sample_size=96,
    degrees_of_freedom=87,
    coefficients=[41.7, -18.42, 6.31, 0.087, 3.9, 5.2, -2.1, 0.0, 4.4],
    standard_errors=[12.3, 9.8, 2.9, 0.048, 2.7, 3.1, 1.8, 0.0, 5.6],
    t_statistics=[3.39, -1.88, 2.18, 1.81, 1.44, 1.68, -1.17, 0.0, 0.79],
    column_names=_DEMO_COLUMNS,
)

DEMO_REPORT = AnalysisReport(
    summary=ReportSummary(
        total_companies=42,
        total_observations=128,
        valid_observations=96,
        filtered_observations=32,
        median_funding_growth=142.5,
        median_period_days=412.0,
        avg_tdr_change=0.118,
        avg_composite_velocity=3.46,
        funding_success_rate=61.5,
    ),
    data_quality=DataQuality(
        total_records=128,
        records_used=96,
        exclusion_counts={
            'non_positive_velocity': 11,
            'extreme_tdr_change': 6,
            'funding_growth_out_of_range': 13,
            'non_positive_company_age': 2,
            'non_positive_team_size': 0,
        },
        filtering_reason="Demo data: live sample too small for inference",
    ),
    strategic_matrix=StrategicMatrix(
        median_abs_tdr_change=0.142,
        median_velocity=3.21,
        buckets={
            StrategicBucket.SPEED_STRATEGY: BucketSummary(26, 188.3, 69.2, 0.311, 5.12),
            StrategicBucket.TECHNICAL_CHAOS: BucketSummary(22, 71.4, 45.5, 0.287, 1.94),
            StrategicBucket.ENGINEERING_EXCELLENCE: BucketSummary(22, 164.9, 72.7, 0.058, 4.87),
            StrategicBucket.OVER_ENGINEERING: BucketSummary(26, 98.6, 57.7, 0.049, 1.81),
        },
    ),
    regression=_DEMO_REGRESSION,
    robustness=RobustnessResult(
        log_transformed=RegressionResult(
            tdr_coefficient=-0.061, velocity_coefficient=0.024,
            interaction_coefficient=0.0003, r_squared=0.162, p_value=0.094,
            sample_size=96, degrees_of_freedom=87,
        ),
        winsorized=RegressionResult(
            tdr_coefficient=-15.87, velocity_coefficient=5.74,
            interaction_coefficient=0.079, r_squared=0.171, p_value=0.081,
            sample_size=96, degrees_of_freedom=87,
        ),
        outlier_excluded=RegressionResult(
            tdr_coefficient=-20.13, velocity_coefficient=6.02,
            interaction_coefficient=0.091, r_squared=0.193, p_value=0.066,
            sample_size=91, degrees_of_freedom=82,
        ),
        winsor_bounds=(-31.0, 612.5),
        excluded_outliers=5,
        outlier_fit_reused_primary=False,
        consistent_variants=3,
    ),
    simple_correlations={
        'tdr_velocity': {'correlation': 0.214, 'p_value': 0.036, 'significance': "significant (p<0.05)"},
        'tdr_funding': {'correlation': -0.132, 'p_value': 0.198, 'significance': "not significant"},
        'velocity_funding': {'correlation': 0.287, 'p_value': 0.005, 'significance': "significant (p<0.01)"},
        'interaction_funding': {'correlation': 0.176, 'p_value': 0.085, 'significance': "marginally significant (p<0.1)"},
        'tdr_success': {'correlation': -0.091, 'p_value': 0.376, 'significance': "not significant"},
    },
    tdr_quartiles=[
        QuantileBucket("Q1", 24, -0.214, 151.2, 3.31, 66.7),
        QuantileBucket("Q2", 24, 0.032, 139.8, 3.12, 62.5),
        QuantileBucket("Q3", 24, 0.141, 127.4, 3.58, 58.3),
        QuantileBucket("Q4", 24, 0.512, 104.6, 3.83, 58.3),
    ],
    velocity_quartiles=[
        QuantileBucket("Q1", 24, 1.12, 88.1, 1.12, 50.0),
        QuantileBucket("Q2", 24, 2.46, 117.9, 2.46, 58.3),
        QuantileBucket("Q3", 24, 3.88, 149.3, 3.88, 66.7),
        QuantileBucket("Q4", 24, 6.38, 167.7, 6.38, 70.8),
    ],
    quality_quintiles=[
        QuantileBucket("Highest Quality", 19, 0.082, 171.4, 3.92, 73.7),
        QuantileBucket("High Quality", 19, 0.141, 149.0, 3.61, 68.4),
        QuantileBucket("Medium Quality", 19, 0.203, 131.6, 3.40, 63.2),
        QuantileBucket("Low Quality", 19, 0.271, 112.3, 3.22, 52.6),
        QuantileBucket("Lowest Quality", 20, 0.389, 94.7, 3.15, 50.0),
    ],
    industry_breakdown=[
        {'industry': 'infrastructure', 'count': 31, 'avg_abs_tdr_change': 0.171,
         'avg_velocity': 3.28, 'avg_funding_growth': 128.4, 'success_rate': 61.3},
        {'industry': 'database', 'count': 24, 'avg_abs_tdr_change': 0.152,
         'avg_velocity': 3.67, 'avg_funding_growth': 155.9, 'success_rate': 66.7},
        {'industry': 'devtools/cli', 'count': 19, 'avg_abs_tdr_change': 0.183,
         'avg_velocity': 3.81, 'avg_funding_growth': 119.2, 'success_rate': 57.9},
        {'industry': 'ai/ml', 'count': 14, 'avg_abs_tdr_change': 0.224,
         'avg_velocity': 3.02, 'avg_funding_growth': 201.3, 'success_rate': 64.3},
        {'industry': 'analytics/data', 'count': 8, 'avg_abs_tdr_change': 0.139,
         'avg_velocity': 2.95, 'avg_funding_growth': 97.5, 'success_rate': 50.0},
    ],
    ranked_correlations=[
        RankedCorrelation('composite_velocity', 'commit_velocity', "Composite Velocity vs Commit Velocity",
                          0.812, "Very Strong", 'positive', 0.0, 0.0, 128),
        RankedCorrelation('commit_velocity', 'author_activity', "Commit Velocity vs Author Activity",
                          0.634, "Strong", 'positive', 0.0, 0.0, 128),
        RankedCorrelation('composite_velocity', 'code_churn', "Composite Velocity vs Code Churn",
                          0.518, "Strong", 'positive', 0.0, 0.0, 128),
        RankedCorrelation('composite_velocity', 'funding_growth_rate', "Composite Velocity vs Funding Growth",
                          0.287, "Weak", 'positive', 0.001, 0.004, 128),
        RankedCorrelation('tdr_change', 'code_churn', "TDR Change vs Code Churn",
                          0.244, "Weak", 'positive', 0.006, 0.017, 128),
        RankedCorrelation('tdr_change', 'funding_growth_rate', "TDR Change vs Funding Growth",
                          -0.132, "Weak", 'negative', 0.135, 0.243, 128),
    ],
    key_findings=KeyFindings(
        primary_finding=(
            "Demo data: development velocity moderates the funding impact of technical-debt "
            "change (interaction=0.087, p=0.072, n=96)."
        ),
        strategic_finding=(
            "The Engineering Excellence quadrant shows the highest next-round success rate "
            "(72.7% across 22 periods)."
        ),
        correlation_finding="Strongest relationship: Composite Velocity vs Commit Velocity (r=0.812, Very Strong).",
        robustness_finding="3 of 3 robustness variants preserve the sign of the interaction effect.",
        data_quality_note="Demo data shown: the live sample is too small for inference.",
        limitations=(
            "Sample limited to open-source ventures; technical-debt ratios depend on static-analysis "
            "effort estimates; survivorship bias in funded companies."
        ),
    ),
    is_demo=True,
    export_date=None,
    significance_level="marginally significant (p<0.1)",
)
