"""
Tests for re-identification risk assessment
"""

import logging

import numpy as np
import pytest

from privacy_index.constants import DIRECT_IDENTIFIER, EPSILON, QUASI_IDENTIFIER, SENSITIVE
from privacy_index.disclosure_risk_metrics import calculate_k_anonymity
from privacy_index.risk import (
    assess_reidentification_risk,
    journalist_risk,
    marketer_risk,
    prosecutor_risk,
    reidentification_probability,
    unprotected_direct_identifiers,
)
from privacy_index.techniques import detect_privacy_techniques
from tests.shared import make_classification, make_medical_dataset, make_scenario_a

_LOGGER = logging.getLogger(__name__)


def _no_techniques(coverage=0.0):
    return {"detected_techniques": [], "technique_coverage": coverage}


def _techniques(technique, attributes, coverage):
    return {
        "detected_techniques": [{"technique": technique, "affected_attributes": attributes}],
        "technique_coverage": coverage,
    }


class TestAttackerModels:
    """
    Tests for the attacker model risks
    """

    # pylint: disable=no-self-use

    @pytest.mark.parametrize("k_value,expected", [(0, 100.0), (1, 100.0), (2, 50.0), (5, 20.0), (200, 0.5)])
    def test_prosecutor(self, k_value, expected):
        """Prosecutor risk is 100 / k"""
        np.testing.assert_allclose(prosecutor_risk(k_value), expected, atol=EPSILON)

    def test_journalist(self):
        """Journalist risk discounts prosecutor risk and adds quasi-identifier exposure"""
        np.testing.assert_allclose(journalist_risk(5, 3), 20.0, atol=EPSILON)
        assert journalist_risk(1, 30) == 100.0

    def test_marketer(self):
        """Marketer risk is 100 / average class size"""
        np.testing.assert_allclose(marketer_risk(4.0), 25.0, atol=EPSILON)
        assert marketer_risk(0.0) == 100.0

    def test_probability(self):
        """Blend of worst and average case"""
        np.testing.assert_allclose(reidentification_probability(2, 4.0), 0.4, atol=EPSILON)
        assert reidentification_probability(0, 0.0) == 1.0


class TestAssessReidentificationRisk:
    """
    Tests for assess_reidentification_risk
    """

    # pylint: disable=no-self-use

    def test_high_risk(self):
        """Unprotected identifier, low k, unique records and no techniques"""
        dataset, _ = make_scenario_a()
        classification = make_classification(
            [
                ("Diagnosis", DIRECT_IDENTIFIER, "text"),
                ("Age", QUASI_IDENTIFIER, "numeric"),
                ("Zip", QUASI_IDENTIFIER, "location"),
            ]
        )
        k_anonymity = calculate_k_anonymity(_LOGGER, dataset, classification, 5)
        result = assess_reidentification_risk(_LOGGER, dataset, classification, k_anonymity, _no_techniques())
        impacts = {f["factor"]: f["impact"] for f in result["risk_factors"]}
        assert impacts == {
            "Unprotected Direct Identifiers": 25.0,
            "Insufficient K-Anonymity": 30.0,
            "Unique Records": 25.0,
            "Low Privacy Technique Coverage": 15.0,
        }
        assert result["risk_score"] == 95
        assert result["risk_level"] == "critical"
        np.testing.assert_allclose(result["reidentification_probability"], 0.9, atol=EPSILON)
        np.testing.assert_allclose(result["prosecutor_risk"], 100.0, atol=EPSILON)
        np.testing.assert_allclose(result["journalist_risk"], 74.0, atol=EPSILON)
        np.testing.assert_allclose(result["marketer_risk"], 75.0, atol=EPSILON)
        for risk_factor in result["risk_factors"]:
            assert set(risk_factor) == {"factor", "impact", "description", "mitigation"}

    def test_protected_identifiers(self):
        """Hashed or pseudonymized identifiers are not a risk factor"""
        classification = make_classification([("id", DIRECT_IDENTIFIER, "hash"), ("name", DIRECT_IDENTIFIER, "text")])
        assert unprotected_direct_identifiers(classification, _techniques("hashing", ["id"], 0.5)) == ["name"]
        assert unprotected_direct_identifiers(classification, _techniques("masking", ["id"], 0.5)) == ["id", "name"]

    def test_identifier_impact_capped(self):
        """Direct identifier impact is capped at 50"""
        dataset, _ = make_scenario_a()
        classification = make_classification(
            [(name, DIRECT_IDENTIFIER, "text") for name in ("Age", "Zip", "Diagnosis")]
        )
        k_anonymity = calculate_k_anonymity(_LOGGER, dataset, classification, 2)
        result = assess_reidentification_risk(_LOGGER, dataset, classification, k_anonymity, _no_techniques(1.0))
        assert [f["impact"] for f in result["risk_factors"]] == [50.0]

    def test_many_quasi_identifiers(self):
        """More than five quasi-identifiers add 5 per extra attribute"""
        names = [f"q{i}" for i in range(8)]
        dataset, _ = make_scenario_a()
        classification = make_classification([(name, QUASI_IDENTIFIER, "categorical") for name in names])
        k_anonymity = {"k_value": 4, "k_threshold": 2, "size_distribution": {"4": 1}, "average_class_size": 4.0}
        result = assess_reidentification_risk(_LOGGER, dataset, classification, k_anonymity, _no_techniques(0.5))
        assert [(f["factor"], f["impact"]) for f in result["risk_factors"]] == [("High Quasi-Identifier Count", 15.0)]
        assert result["risk_score"] == 15
        assert result["risk_level"] == "low"

    def test_low_risk(self):
        """A k-anonymous dataset with hashed identifiers has no risk factors"""
        dataset, classification = make_medical_dataset(hashed_ids=True)
        k_anonymity = calculate_k_anonymity(_LOGGER, dataset, classification, 5)
        techniques = detect_privacy_techniques(_LOGGER, dataset, classification)
        result = assess_reidentification_risk(_LOGGER, dataset, classification, k_anonymity, techniques)
        assert result["risk_factors"] == []
        assert result["risk_score"] == 0
        assert result["risk_level"] == "minimal"

    def test_score_in_range(self):
        """Risk scores stay within [0, 100]"""
        dataset, _ = make_scenario_a()
        classification = make_classification(
            [(f"d{i}", DIRECT_IDENTIFIER, "text") for i in range(4)]
            + [(f"q{i}", QUASI_IDENTIFIER, "text") for i in range(12)]
            + [("Diagnosis", SENSITIVE, "text")]
        )
        k_anonymity = {"k_value": 1, "k_threshold": 10, "size_distribution": {"1": 4}, "average_class_size": 1.0}
        result = assess_reidentification_risk(_LOGGER, dataset, classification, k_anonymity, _no_techniques())
        assert result["risk_score"] == 100
