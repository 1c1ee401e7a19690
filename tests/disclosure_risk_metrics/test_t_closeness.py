"""
Tests for t-closeness disclosure risk metric
"""

import logging

import numpy as np
import pytest

from privacy_index.constants import EPSILON, QUASI_IDENTIFIER, SENSITIVE
from privacy_index.dataset import Dataset
from privacy_index.disclosure_risk_metrics import (
    calculate_t_closeness,
    calculate_t_closeness_score,
    generate_t_closeness_insights,
    get_t_closeness_insights,
)
from privacy_index.disclosure_risk_metrics.t_closeness import (
    categorical_emd,
    numerical_emd,
    order_numerical_support,
)
from privacy_index.equivalence_classes import build_equivalence_classes
from privacy_index.utils import probability_distribution
from tests.shared import make_classification, make_scenario_a

_LOGGER = logging.getLogger(__name__)


def _make_grouped_dataset(groups, data_pattern="categorical"):
    rows = [[group, value] for group, values in groups for value in values]
    dataset = Dataset(["zip", "value"], rows)
    classification = make_classification(
        [("zip", QUASI_IDENTIFIER, "location"), ("value", SENSITIVE, data_pattern)]
    )
    return dataset, classification


class TestEarthMoversDistance:
    """
    Tests for categorical_emd and numerical_emd
    """

    # pylint: disable=no-self-use

    def test_categorical_equal(self):
        """Equal distributions have distance 0"""
        distribution = {"flu": 0.5, "cold": 0.25, "asthma": 0.25}
        assert categorical_emd(distribution, dict(distribution)) == 0.0

    def test_categorical_disjoint(self):
        """Disjoint supports have distance 1"""
        np.testing.assert_allclose(categorical_emd({"a": 1.0}, {"b": 1.0}), 1.0, atol=EPSILON)

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_categorical_bounds(self, seed):
        """Distances lie in [0, 1]"""
        rng = np.random.default_rng(seed)
        values = ["a", "b", "c", "d", "e"]
        local = dict(zip(values, rng.dirichlet(np.ones(len(values)))))
        global_ = dict(zip(values, rng.dirichlet(np.ones(len(values)))))
        distance = categorical_emd(local, global_)
        assert -EPSILON <= distance <= 1 + EPSILON

    def test_order_numerical_support(self):
        """Numbers first in numeric order, then the rest lexically"""
        assert order_numerical_support(["10", "n/a", "9.5", "abc", "-1"]) == ["-1", "9.5", "10", "abc", "n/a"]

    def test_numerical(self):
        """All local mass on the lower of two values"""
        actual = numerical_emd({"1": 1.0}, {"1": 0.5, "2": 0.5})
        np.testing.assert_allclose(actual, 0.25, atol=EPSILON)

    def test_numerical_uses_numeric_order(self):
        """2 lies between 1 and 10, so mass at 10 is farther from 1 than mass at 2"""
        near = numerical_emd({"2": 1.0}, {"1": 1.0, "2": 0.0, "10": 0.0})
        far = numerical_emd({"10": 1.0}, {"1": 1.0, "2": 0.0, "10": 0.0})
        assert near < far


class TestCalculateTCloseness:
    """
    Tests for calculate_t_closeness
    """

    # pylint: disable=no-self-use

    def test_equal_distributions(self):
        """Classes mirroring the global distribution have distance 0"""
        dataset, classification = _make_grouped_dataset([("a", ["x", "y"]), ("b", ["y", "x"])])
        result = calculate_t_closeness(_LOGGER, dataset, classification, 0.15)
        assert result["max_distance"] == 0.0
        assert result["satisfies_t_closeness"]
        assert result["violating_classes"] == []
        assert result["sensitive_attribute"] == "value"
        np.testing.assert_allclose(result["global_distribution"]["x"], 0.5, atol=EPSILON)
        np.testing.assert_allclose(result["compliance_rate"], 100.0, atol=EPSILON)

    def test_skewed(self):
        """Homogeneous classes of a two valued attribute are at distance 0.5"""
        dataset, classification = _make_grouped_dataset([("a", ["x", "x"]), ("b", ["y", "y"])])
        result = calculate_t_closeness(_LOGGER, dataset, classification, 0.15)
        np.testing.assert_allclose(result["max_distance"], 0.5, atol=EPSILON)
        np.testing.assert_allclose(result["average_distance"], 0.5, atol=EPSILON)
        assert not result["satisfies_t_closeness"]
        assert result["violating_classes"] == ["EC-1", "EC-2"]
        assert result["compliance_rate"] == 0.0
        assert calculate_t_closeness_score(result) == 10

    def test_numerical_attribute(self):
        """Numeric sensitive attributes use the ordered distance"""
        dataset, classification = _make_grouped_dataset(
            [("a", ["1", "2"]), ("b", ["3", "4"])], data_pattern="numeric"
        )
        result = calculate_t_closeness(_LOGGER, dataset, classification, 0.5)
        # local CDF of a: 0.5, 1, 1, 1; global: 0.25, 0.5, 0.75, 1
        np.testing.assert_allclose(result["class_results"][0]["distance"], 0.25, atol=EPSILON)
        assert result["satisfies_t_closeness"]

    @pytest.mark.parametrize("data_pattern", ["categorical", "numeric"])
    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_matches_class_by_class_distance(self, data_pattern, seed):
        """Distances of all classes computed together equal the distances computed one class at a time"""
        rng = np.random.default_rng(seed)
        n_rows = 400
        zips = rng.integers(0, 60, n_rows)
        values = rng.choice(["1", "2", "5", "10", "12.5", "n/a"], size=n_rows, p=[0.3, 0.25, 0.2, 0.1, 0.1, 0.05])
        dataset = Dataset(["zip", "value"], [[str(z), str(v)] for z, v in zip(zips, values)])
        classification = make_classification(
            [("zip", QUASI_IDENTIFIER, "location"), ("value", SENSITIVE, data_pattern)]
        )
        result = calculate_t_closeness(_LOGGER, dataset, classification, 0.15)

        emd = numerical_emd if data_pattern == "numeric" else categorical_emd
        equivalence_classes = build_equivalence_classes(_LOGGER, dataset, ["zip"])
        assert len(result["class_results"]) == len(equivalence_classes)
        for ec, class_result in zip(equivalence_classes, result["class_results"]):
            local_distribution = probability_distribution(dataset.frame["value"].iloc[ec.row_indices])
            assert class_result["equivalence_class_id"] == ec.id
            assert set(class_result["local_distribution"]) == set(local_distribution)
            for value, probability in local_distribution.items():
                np.testing.assert_allclose(class_result["local_distribution"][value], probability, atol=EPSILON)
            np.testing.assert_allclose(
                class_result["distance"],
                emd(local_distribution, result["global_distribution"]),
                atol=EPSILON,
            )

    def test_first_sensitive_attribute_only(self):
        """Only the first sensitive attribute is analyzed"""
        dataset = Dataset(["zip", "a", "b"], [["1", "x", "p"], ["2", "x", "q"]])
        classification = make_classification(
            [
                ("zip", QUASI_IDENTIFIER, "location"),
                ("b", SENSITIVE, "categorical"),
                ("a", SENSITIVE, "categorical"),
            ]
        )
        result = calculate_t_closeness(_LOGGER, dataset, classification, 0.15)
        assert result["sensitive_attribute"] == "b"
        np.testing.assert_allclose(result["max_distance"], 0.5, atol=EPSILON)

    def test_no_sensitive_attribute(self):
        """Without sensitive attributes the metric is vacuous"""
        dataset, _ = make_scenario_a()
        classification = make_classification([("Age", QUASI_IDENTIFIER, "numeric")])
        result = calculate_t_closeness(_LOGGER, dataset, classification, 0.15)
        assert result["sensitive_attribute"] == ""
        assert result["max_distance"] == 0.0
        assert result["satisfies_t_closeness"]
        assert calculate_t_closeness_score(result) == 50
        assert generate_t_closeness_insights(result) == [
            "No sensitive attribute classified, t-closeness not applicable"
        ]


class TestTClosenessScoring:
    """
    Tests for calculate_t_closeness_score and insights
    """

    # pylint: disable=no-self-use

    def test_score_equal(self):
        """Equal distributions score 100"""
        dataset, classification = _make_grouped_dataset([("a", ["x", "y"]), ("b", ["x", "y"])])
        result = calculate_t_closeness(_LOGGER, dataset, classification, 0.15)
        assert calculate_t_closeness_score(result) == 100

    def test_insights(self):
        """Skew above twice the threshold is high risk"""
        dataset, classification = _make_grouped_dataset([("a", ["x", "x"]), ("b", ["y", "y"])])
        result = calculate_t_closeness(_LOGGER, dataset, classification, 0.15)
        assert "2 class(es) have skewed distributions" in generate_t_closeness_insights(result)
        assessment = get_t_closeness_insights(result)
        assert assessment["risk_level"] == "high"
        assert len(assessment["suggestions"]) == 3
