"""Shared fixtures: observation factories and moderation-effect samples."""

import math
from datetime import date, timedelta

import numpy as np
import pytest

from data_preparation.records import (
    CompanyRecord,
    FundingRoundRecord,
    Industry,
    Observation,
    VelocityPeriodRecord,
)
from statistical_analysis.regression_engine import (
    INTERACTION_INDEX,
    ControlVariables,
    RegressionEngine,
)


# velocity, |tdr| magnitude, company age (months), team size, round number
BASES = [
    (1.0, 0.2, 12.0, 3, 1),
    (2.0, 0.5, 18.0, 5, 2),
    (3.0, 0.3, 30.0, 4, 2),
    (4.0, 0.6, 24.0, 8, 3),
    (5.0, 0.4, 40.0, 6, 3),
    (1.5, 0.25, 20.0, 10, 4),
]
NOISE = 0.01

SIGNAL_COEFFICIENTS = {'intercept': 40.0, 'tdr': -20.0, 'velocity': 5.0, 'interaction': 0.08}


def growth_from(coefficients, tdr, velocity, noise):
    return (coefficients['intercept']
            + coefficients['tdr'] * tdr
            + coefficients['velocity'] * velocity
            + coefficients['interaction'] * tdr * velocity
            + noise)


def build_symmetric_rows():
    """Rows (tdr, velocity, age, team, round, noise) with tdr mirrored around zero.

    Each base contributes tdr=+a and tdr=-a, each twice with noise +e/-e on
    otherwise identical design rows, so the noise is orthogonal to every
    design column and OLS recovers the generating coefficients exactly.
    Row index layout: base * 4 + (0 for +a, 2 for -a) + (0 for +e, 1 for -e).
    """
    rows = []
    for velocity, magnitude, age, team, round_number in BASES:
        for sign in (1, -1):
            for noise in (NOISE, -NOISE):
                rows.append((sign * magnitude, velocity, age, team, round_number, noise))
    velocity, _, age, team, round_number = BASES[0]
    rows.append((0.0, velocity, age, team, round_number, 0.0))
    return rows


def mirror_permutation(n_rows):
    """Swap each +a row with its -a twin; the trailing zero-TDR row stays put"""
    return [i ^ 2 if i < n_rows - 1 else i for i in range(n_rows)]


@pytest.fixture
def observation_factory():
    def make(**overrides):
        defaults = dict(
            company_id=1,
            from_round_id=10,
            to_round_id=11,
            period_days=365,
            tdr_change=0.1,
            composite_velocity=2.0,
            development_speed=150.0,
            commit_velocity=3.0,
            code_churn=1200.0,
            author_activity=4.0,
            funding_growth_rate=50.0,
            got_next_round=True,
            company_age_months=24.0,
            team_size=4,
            industry=Industry.INFRASTRUCTURE,
            round_number=2,
        )
        defaults.update(overrides)
        return Observation(**defaults)
    return make


@pytest.fixture
def moderation_sample():
    """25-row regression inputs with a positive TDR x velocity interaction"""
    rows = build_symmetric_rows()
    growths = [growth_from(SIGNAL_COEFFICIENTS, tdr, vel, noise) for tdr, vel, _, _, _, noise in rows]
    return {
        'tdr_changes': [row[0] for row in rows],
        'velocities': [row[1] for row in rows],
        'funding_growths': growths,
        'controls': [
            ControlVariables(company_age_months=age, team_size=team, round_number=rn,
                             industry=Industry.INFRASTRUCTURE)
            for _, _, age, team, rn, _ in rows
        ],
    }


@pytest.fixture
def mirrored_moderation_sample(moderation_sample):
    """Funding growths swapped between mirrored twins, which negates the interaction"""
    growths = moderation_sample['funding_growths']
    permutation = mirror_permutation(len(growths))
    return dict(moderation_sample, funding_growths=[growths[j] for j in permutation])


NOISY_INTERACTION = 0.08
# Squared noise norm as a share of the squared net-interaction norm
NOISY_NOISE_SHARE = 0.0025


def build_noisy_moderation_sample(seed=2024, n_rows=25):
    """Random design whose funding growth carries a TDR x velocity interaction of 0.08.

    Growth is 40 + 0.08 * (interaction net of the other design columns) plus
    noise orthogonal to the design. The centered growths then have squared
    norm (0.08^2 + 0.0025) * SS, SS being the squared norm of the net
    interaction, so the interaction fitted to ANY permutation of the growths
    is bounded by sqrt(0.0089) < 0.1 (Cauchy-Schwarz).
    """
    rng = np.random.default_rng(seed)
    tdr_changes = rng.uniform(-0.6, 0.6, n_rows)
    velocities = rng.uniform(0.5, 5.0, n_rows)
    controls = [
        ControlVariables(
            company_age_months=BASES[i % len(BASES)][2],
            team_size=BASES[i % len(BASES)][3],
            round_number=BASES[i % len(BASES)][4],
            industry=Industry.INFRASTRUCTURE,
        )
        for i in range(n_rows)
    ]

    design, _ = RegressionEngine().build_design_matrix(tdr_changes, velocities, controls)
    interaction = design[:, INTERACTION_INDEX]
    others = np.delete(design, INTERACTION_INDEX, axis=1)
    fitted, *_ = np.linalg.lstsq(others, interaction, rcond=None)
    net_interaction = interaction - others @ fitted
    ss = float(net_interaction @ net_interaction)

    noise = rng.normal(size=n_rows)
    projection, *_ = np.linalg.lstsq(design, noise, rcond=None)
    noise = noise - design @ projection
    noise = noise * math.sqrt(NOISY_NOISE_SHARE * ss / float(noise @ noise))

    growths = 40.0 + NOISY_INTERACTION * net_interaction + noise
    return {
        'tdr_changes': [float(v) for v in tdr_changes],
        'velocities': [float(v) for v in velocities],
        'funding_growths': [float(v) for v in growths],
        'controls': controls,
    }


@pytest.fixture
def noisy_moderation_sample():
    return build_noisy_moderation_sample()


@pytest.fixture
def positive_moderation_observations(observation_factory):
    """25 observations with strictly positive TDR change and funding growth"""
    coefficients = {'intercept': 30.0, 'tdr': 5.0, 'velocity': 1.0, 'interaction': 2.0}
    observations = []
    for velocity, magnitude, age, team, round_number in BASES:
        for multiple in (1, 2):
            for noise in (NOISE, -NOISE):
                tdr = magnitude * multiple
                observations.append(observation_factory(
                    tdr_change=tdr,
                    composite_velocity=velocity,
                    funding_growth_rate=growth_from(coefficients, tdr, velocity, noise),
                    company_age_months=age,
                    team_size=team,
                    round_number=round_number,
                ))
    velocity, magnitude, age, team, round_number = BASES[0]
    observations.append(observation_factory(
        tdr_change=magnitude,
        composite_velocity=velocity,
        funding_growth_rate=growth_from(coefficients, magnitude, velocity, 0.0),
        company_age_months=age,
        team_size=team,
        round_number=round_number,
    ))
    return observations


def build_moderation_records(permutation=None):
    """Company, round and period records whose assembled sample is the moderation design.

    Every row is its own company so twins share dates, team size and round
    position. Round amounts encode the funding growth of the row.
    """
    rows = build_symmetric_rows()
    growths = [growth_from(SIGNAL_COEFFICIENTS, tdr, vel, noise) for tdr, vel, _, _, _, noise in rows]
    if permutation is not None:
        growths = [growths[j] for j in permutation]

    period_by_velocity = {base[0]: 180 + 60 * i for i, base in enumerate(BASES)}

    companies, rounds, periods = [], [], []
    round_id = 1
    anchor = date(2021, 1, 4)
    for company_id, ((tdr, velocity, _, team, round_number, _), growth) in enumerate(
        zip(rows, growths), start=1
    ):
        companies.append(CompanyRecord(
            id=company_id,
            name=f"Venture {company_id}",
            repository_url=f"https://github.com/venture-{company_id}/platform",
        ))

        # the "to" round lands at position round_number + 1; a constant shift of
        # the round control is absorbed by the intercept
        for j in range(round_number - 1, 0, -1):
            rounds.append(FundingRoundRecord(
                id=round_id, company_id=company_id, round_type=f"early_{j}",
                round_date=anchor - timedelta(days=120 * j), amount_usd=250_000.0,
            ))
            round_id += 1

        period_days = period_by_velocity[velocity]
        from_round = FundingRoundRecord(
            id=round_id, company_id=company_id, round_type="seed",
            round_date=anchor, amount_usd=1_000_000.0,
        )
        to_round = FundingRoundRecord(
            id=round_id + 1, company_id=company_id, round_type="series_a",
            round_date=anchor + timedelta(days=period_days),
            amount_usd=1_000_000.0 * (1 + growth / 100),
        )
        round_id += 2
        rounds.extend([from_round, to_round])

        periods.append(VelocityPeriodRecord(
            id=company_id,
            company_id=company_id,
            from_round_id=from_round.id,
            to_round_id=to_round.id,
            period_days=period_days,
            tdr_change=tdr,
            composite_velocity=velocity,
            development_speed=100.0 * velocity,
            commit_velocity=2.0 * velocity,
            code_churn=500.0 + 40.0 * company_id,
            author_activity=float(team),
            got_next_round=tdr * velocity > 0,
        ))
    return companies, rounds, periods


@pytest.fixture
def moderation_records():
    return build_moderation_records()


@pytest.fixture
def mirrored_moderation_records():
    return build_moderation_records(mirror_permutation(len(build_symmetric_rows())))

