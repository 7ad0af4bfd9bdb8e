"""Tests for the OLS moderation model."""

import random
from dataclasses import replace

import pytest

from analysis_config import AnalysisConfig
from data_preparation.records import Industry
from statistical_analysis.regression_engine import (
    BASE_COLUMNS,
    CategoricalEncoder,
    ControlVariables,
    RegressionEngine,
    RegressionResult,
)
from statistical_engine import pearson_correlation


def control(industry=Industry.INFRASTRUCTURE):
    return ControlVariables(company_age_months=12.0, team_size=3, round_number=1, industry=industry)


class TestInsufficientSamples:
    """Test that fits without enough evidence return zeroed results."""

    def test_below_minimum_sample(self, moderation_sample):
        truncated = {key: values[:19] for key, values in moderation_sample.items()}

        result = RegressionEngine().regress(**truncated)

        assert result.sample_size == 19
        assert result.interaction_coefficient == 0.0
        assert result.tdr_coefficient == 0.0
        assert result.r_squared == 0.0
        assert result.p_value == 1.0
        assert result.standard_errors == []
        assert not result.is_estimated
        assert not result.hypothesis_supported

    def test_length_mismatch(self, moderation_sample):
        sample = dict(moderation_sample, velocities=moderation_sample['velocities'][:-1])

        result = RegressionEngine().regress(**sample)

        assert result.p_value == 1.0
        assert not result.is_estimated

    def test_no_residual_degrees_of_freedom(self, moderation_sample):
        truncated = {key: values[:5] for key, values in moderation_sample.items()}
        engine = RegressionEngine(AnalysisConfig(min_regression_sample=3))

        result = engine.regress(**truncated)

        assert result.p_value == 1.0
        assert not result.is_estimated


class TestModerationFit:
    """Test coefficient recovery on samples with a known generating model."""

    def test_recovers_positive_interaction(self, moderation_sample):
        result = RegressionEngine().regress(**moderation_sample)

        assert result.interaction_coefficient == pytest.approx(0.08, abs=1e-4)
        assert result.tdr_coefficient == pytest.approx(-20.0, abs=1e-3)
        assert result.velocity_coefficient == pytest.approx(5.0, abs=1e-3)
        assert result.p_value < 0.10
        assert result.hypothesis_supported
        assert result.r_squared > 0.99
        assert result.degrees_of_freedom == 25 - 8

    def test_mirrored_outcomes_reverse_the_interaction(self, mirrored_moderation_sample):
        result = RegressionEngine().regress(**mirrored_moderation_sample)

        assert result.interaction_coefficient == pytest.approx(-0.08, abs=1e-4)
        assert abs(result.interaction_coefficient) < 0.1
        assert not result.hypothesis_supported

    def test_statistics_cover_every_column(self, moderation_sample):
        result = RegressionEngine().regress(**moderation_sample)

        assert result.column_names == BASE_COLUMNS + ["industry[infrastructure]"]
        assert len(result.coefficients) == len(result.column_names)
        assert len(result.standard_errors) == len(result.column_names)
        assert len(result.t_statistics) == len(result.column_names)
        assert all(se >= 0 for se in result.standard_errors)
        assert 0.0 <= result.p_value <= 1.0

    def test_tolerates_collinear_industry_dummies(self, moderation_sample):
        controls = [
            replace(c, industry=Industry.DATABASE if (i // 4 if i < 24 else 0) < 3
                    else Industry.INFRASTRUCTURE)
            for i, c in enumerate(moderation_sample['controls'])
        ]

        result = RegressionEngine().regress(**dict(moderation_sample, controls=controls))

        assert result.column_names[-2:] == ["industry[database]", "industry[infrastructure]"]
        assert result.interaction_coefficient == pytest.approx(0.08, abs=1e-3)

    def test_regress_observations_uses_substitute_outcome(self, positive_moderation_observations):
        engine = RegressionEngine()
        doubled = [2 * obs.funding_growth_rate for obs in positive_moderation_observations]

        primary = engine.regress_observations(positive_moderation_observations)
        substitute = engine.regress_observations(positive_moderation_observations, doubled)

        assert primary.interaction_coefficient == pytest.approx(2.0, abs=1e-4)
        assert substitute.interaction_coefficient == pytest.approx(4.0, abs=1e-4)


class TestShuffledOutcomes:
    """Test that randomly shuffled funding growths carry no moderation effect."""

    SEEDS = range(40)

    def shuffled(self, sample, seed):
        growths = list(sample['funding_growths'])
        random.Random(seed).shuffle(growths)
        return dict(sample, funding_growths=growths)

    def test_noisy_sample_supports_hypothesis(self, noisy_moderation_sample):
        result = RegressionEngine().regress(**noisy_moderation_sample)
        interactions = [t * v for t, v in zip(noisy_moderation_sample['tdr_changes'],
                                              noisy_moderation_sample['velocities'])]

        assert result.interaction_coefficient == pytest.approx(0.08, abs=1e-6)
        assert result.p_value < 0.10
        assert result.hypothesis_supported
        assert 0.15 < pearson_correlation(interactions, noisy_moderation_sample['funding_growths']) < 0.7

    def test_every_shuffle_keeps_interaction_small(self, noisy_moderation_sample):
        engine = RegressionEngine()

        for seed in self.SEEDS:
            result = engine.regress(**self.shuffled(noisy_moderation_sample, seed))
            assert abs(result.interaction_coefficient) < 0.1, f"seed {seed}"

    def test_shuffles_rarely_support_hypothesis(self, noisy_moderation_sample):
        engine = RegressionEngine()

        supported = [
            seed for seed in self.SEEDS
            if engine.regress(**self.shuffled(noisy_moderation_sample, seed)).hypothesis_supported
        ]

        # ~5% expected under random permutation
        assert len(supported) <= 8

    def test_shuffle_keeps_sample_values(self, noisy_moderation_sample):
        shuffled = self.shuffled(noisy_moderation_sample, 7)

        assert sorted(shuffled['funding_growths']) == sorted(noisy_moderation_sample['funding_growths'])
        assert shuffled['funding_growths'] != noisy_moderation_sample['funding_growths']


class TestDesignMatrix:
    """Test design matrix layout and industry encoding."""

    def test_dummy_columns_in_first_seen_order(self):
        engine = RegressionEngine()
        controls = [control(Industry.AI_ML), control(Industry.DATABASE), control(Industry.AI_ML)]

        design, names = engine.build_design_matrix([0.1, 0.2, 0.3], [1.0, 2.0, 3.0], controls)

        assert design.shape == (3, 9)
        assert names[-2:] == ["industry[ai/ml]", "industry[database]"]
        assert list(design[1, -2:]) == [0.0, 1.0]

    def test_interaction_and_log_controls(self):
        design, _ = RegressionEngine().build_design_matrix([0.5], [4.0], [control()])

        row = design[0]
        assert row[0] == 1.0
        assert row[3] == pytest.approx(2.0)
        assert row[4] == pytest.approx(2.564949, abs=1e-6)
        assert row[5] == pytest.approx(1.386294, abs=1e-6)
        assert row[6] == 1.0

    def test_encoder_keeps_first_seen_categories(self):
        encoder = CategoricalEncoder(["b", "a", "b", "c"])

        assert encoder.categories == ["b", "a", "c"]
        assert encoder.encode("a") == [0.0, 1.0, 0.0]
        assert encoder.column_names == ["industry[b]", "industry[a]", "industry[c]"]


class TestHypothesisRule:
    """Test the interaction-and-significance decision rule."""

    @pytest.mark.parametrize("interaction,p_value,supported", [
        (0.06, 0.09, True),
        (0.05, 0.01, False),
        (0.20, 0.10, False),
        (-0.30, 0.001, False),
    ])
    def test_decision_rule(self, interaction, p_value, supported):
        result = RegressionResult(
            tdr_coefficient=0.0,
            velocity_coefficient=0.0,
            interaction_coefficient=interaction,
            r_squared=0.5,
            p_value=p_value,
            sample_size=30,
        )

        assert result.hypothesis_supported is supported

    def test_to_dict_maps_columns(self, moderation_sample):
        result = RegressionEngine().regress(**moderation_sample).to_dict()

        assert result['hypothesis_supported'] is True
        assert result['coefficients']['tdr_x_velocity'] == pytest.approx(0.08, abs=1e-4)
        assert set(result['standard_errors']) == set(BASE_COLUMNS + ["industry[infrastructure]"])
