"""
Tests for utils
"""

import logging
import math

import numpy as np
import pandas as pd
import pytest

from privacy_index.constants import EPSILON
from privacy_index.utils import (
    cumulative_distribution_distance,
    grade_for_score,
    metric_status,
    probability_distribution,
    risk_level_for_score,
    round_half_up,
    shannon_entropy,
    value_counts,
)

_LOGGER = logging.getLogger(__name__)


class TestScoreMappings:
    """
    Tests for rounding and score to label mappings
    """

    # pylint: disable=no-self-use

    @pytest.mark.parametrize(
        "value,expected",
        [(72.5, 73), (72.49, 72), (0.5, 1), (1.5, 2), (2.5, 3), (0.0, 0), (99.99, 100)],
    )
    def test_round_half_up(self, value, expected):
        """Halves are rounded up, unlike round()"""
        assert round_half_up(value) == expected

    @pytest.mark.parametrize("score,expected", [(100, "pass"), (70, "pass"), (69, "warning"), (40, "warning"), (39, "fail")])
    def test_metric_status(self, score, expected):
        """Status thresholds"""
        assert metric_status(score) == expected

    @pytest.mark.parametrize(
        "score,expected",
        [(95, "minimal"), (90, "minimal"), (89, "low"), (70, "low"), (50, "medium"), (30, "high"), (29, "critical")],
    )
    def test_risk_level(self, score, expected):
        """Risk level thresholds"""
        assert risk_level_for_score(score) == expected

    @pytest.mark.parametrize(
        "score,expected",
        [(90, "A"), (89, "B"), (80, "B"), (79, "C"), (70, "C"), (60, "D"), (59, "F"), (0, "F")],
    )
    def test_grade(self, score, expected):
        """Grade thresholds"""
        assert grade_for_score(score) == expected


class TestDistributions:
    """
    Tests for frequency and probability helpers
    """

    # pylint: disable=no-self-use

    def test_value_counts(self):
        """Counts keep first appearance order"""
        assert list(value_counts(["b", "a", "b"]).items()) == [("b", 2), ("a", 1)]

    def test_probability_distribution(self):
        """Probabilities sum to 1"""
        distribution = probability_distribution(pd.Series(["a", "b", "a", "a"]))
        np.testing.assert_allclose(distribution["a"], 0.75, atol=EPSILON)
        np.testing.assert_allclose(sum(distribution.values()), 1.0, atol=EPSILON)
        assert probability_distribution(pd.Series([], dtype=object)) == {}

    def test_entropy_single_value(self):
        """A single distinct value has no entropy"""
        assert shannon_entropy([5]) == 0.0
        assert shannon_entropy([]) == 0.0

    @pytest.mark.parametrize("n", [2, 3, 4, 7, 16])
    def test_entropy_uniform(self, n):
        """n equally frequent values have entropy log2(n)"""
        actual = shannon_entropy([3] * n)
        np.testing.assert_allclose(actual, math.log2(n), atol=EPSILON, err_msg=f"{actual} != log2({n})")

    def test_entropy_ignores_zero_counts(self):
        """Zero counts do not contribute"""
        np.testing.assert_allclose(shannon_entropy([2, 0, 2]), 1.0, atol=EPSILON)


class TestCumulativeDistributionDistance:
    """
    Tests for cumulative_distribution_distance
    """

    # pylint: disable=no-self-use

    def test_equal(self):
        """Equal distributions have no distance"""
        probs = np.array([0.2, 0.3, 0.5])
        assert cumulative_distribution_distance(probs, probs.copy()) == 0.0

    def test_example(self):
        """All local mass on the first of two values"""
        actual = cumulative_distribution_distance(np.array([1.0, 0.0]), np.array([0.5, 0.5]))
        np.testing.assert_allclose(actual, 0.25, atol=EPSILON)

    def test_extremes(self):
        """Mass at opposite ends of the support"""
        actual = cumulative_distribution_distance(np.array([1.0, 0.0, 0.0]), np.array([0.0, 0.0, 1.0]))
        np.testing.assert_allclose(actual, 2 / 3, atol=EPSILON)
