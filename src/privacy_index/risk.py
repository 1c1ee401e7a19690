"""
Re-identification risk assessment.

Combines the k-anonymity result and the detected privacy techniques into a
0-100 risk score built from independent, individually capped risk factors, and
estimates re-identification risk under three attacker models:

- prosecutor: the attacker knows the target is in the dataset
- journalist: the attacker does not know whether the target is in the dataset
- marketer: the attacker tries to re-identify as many records as possible

References
----------
K. El Emam and F. K. Dankar, "Protecting Privacy Using k-Anonymity,"
Journal of the American Medical Informatics Association, vol. 15, no. 5,
pp. 627-637, 2008. doi: 10.1197/jamia.M2716.
"""

import logging
from typing import Any

from privacy_index.constants import DIRECT_IDENTIFIER, QUASI_IDENTIFIER
from privacy_index.dataset import Classification, Dataset
from privacy_index.utils import risk_level_for_score, round_half_up

# Techniques that protect direct identifiers
DIRECT_IDENTIFIER_PROTECTIONS: tuple[str, ...] = ("pseudonymization", "hashing")


def prosecutor_risk(k_value: float) -> float:
    """
    Worst case probability (in percent) of re-identifying a record known to be in the dataset.
    """
    if k_value <= 0:
        return 100.0
    return min(100.0 / k_value, 100.0)


def journalist_risk(k_value: float, quasi_identifier_count: int) -> float:
    return min(prosecutor_risk(k_value) * 0.7 + quasi_identifier_count * 2, 100.0)


def marketer_risk(average_class_size: float) -> float:
    if average_class_size <= 0:
        return 100.0
    return min(100.0 / average_class_size, 100.0)


def reidentification_probability(k_value: float, average_class_size: float) -> float:
    """
    Blend of the worst case (1 / k) and average case (1 / average class size) probabilities.

    Examples
    --------
    >>> reidentification_probability(2, 4.0)
    0.4
    """
    if k_value <= 0:
        return 1.0
    worst_case = 1 / k_value
    average_case = 1 / average_class_size if average_class_size > 0 else 1.0
    return worst_case * 0.6 + average_case * 0.4


def unprotected_direct_identifiers(
    classification: Classification, technique_detection: dict[str, Any]
) -> list[str]:
    """
    Direct identifiers not covered by a detected hashing or pseudonymization technique.
    """
    protected = {
        attr
        for technique in technique_detection["detected_techniques"]
        if technique["technique"] in DIRECT_IDENTIFIER_PROTECTIONS
        for attr in technique["affected_attributes"]
    }
    return [name for name in classification.names_of_type(DIRECT_IDENTIFIER) if name not in protected]


def assess_reidentification_risk(
    logger: logging.Logger,
    dataset: Dataset,
    classification: Classification,
    k_anonymity: dict[str, Any],
    technique_detection: dict[str, Any],
) -> dict[str, Any]:
    """
    Assess re-identification risk from k-anonymity and detected techniques.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance for logging.
    dataset : Dataset
        Input dataset.
    classification : Classification
        Attribute classification.
    k_anonymity : Dict[str, Any]
        Output of calculate_k_anonymity.
    technique_detection : Dict[str, Any]
        Output of detect_privacy_techniques.

    Returns
    -------
    Dict[str, Any]
        risk_score (0-100, higher is riskier), risk_level,
        reidentification_probability, risk_factors (factor, impact,
        description, mitigation), prosecutor_risk, journalist_risk and
        marketer_risk.

    Notes
    -----
    Risk factors and their maximum impact:

    - unprotected direct identifiers: 25 per attribute, at most 50
    - k below the threshold: 10 per missing unit of k, at most 30
    - singleton equivalence classes: their share of records in percent, at most 25
    - more than 5 quasi-identifiers: 5 per extra attribute, at most 20
    - technique coverage below 30%: (1 - coverage) * 15
    """
    risk_factors = []

    unprotected = unprotected_direct_identifiers(classification, technique_detection)
    if len(unprotected) > 0:
        risk_factors.append(
            {
                "factor": "Unprotected Direct Identifiers",
                "impact": min(len(unprotected) * 25, 50),
                "description": f"{len(unprotected)} direct identifier(s) without protection",
                "mitigation": "Apply pseudonymization or hashing to direct identifiers",
            }
        )

    k_value = k_anonymity["k_value"]
    k_threshold = k_anonymity["k_threshold"]
    if k_value < k_threshold:
        risk_factors.append(
            {
                "factor": "Insufficient K-Anonymity",
                "impact": min((k_threshold - k_value) * 10, 30),
                "description": f"k={k_value} is below the recommended threshold of {k_threshold}",
                "mitigation": "Generalize quasi-identifiers or suppress outlier records",
            }
        )

    unique_records = k_anonymity["size_distribution"].get("1", 0)
    if unique_records > 0 and dataset.record_count > 0:
        unique_ratio = unique_records / dataset.record_count
        risk_factors.append(
            {
                "factor": "Unique Records",
                "impact": min(unique_ratio * 100, 25),
                "description": (
                    f"{unique_records} record(s) are uniquely identifiable ({unique_ratio * 100:.1f}%)"
                ),
                "mitigation": "Suppress or merge unique records with similar ones",
            }
        )

    quasi_identifier_count = len(classification.names_of_type(QUASI_IDENTIFIER))
    if quasi_identifier_count > 5:
        risk_factors.append(
            {
                "factor": "High Quasi-Identifier Count",
                "impact": min((quasi_identifier_count - 5) * 5, 20),
                "description": (
                    f"{quasi_identifier_count} quasi-identifiers increase linking attack surface"
                ),
                "mitigation": "Reduce quasi-identifiers or apply stronger generalization",
            }
        )

    coverage = technique_detection["technique_coverage"]
    if coverage < 0.3:
        risk_factors.append(
            {
                "factor": "Low Privacy Technique Coverage",
                "impact": (1 - coverage) * 15,
                "description": (
                    f"Only {coverage * 100:.0f}% of attributes have detected privacy protections"
                ),
                "mitigation": "Apply additional privacy-preserving techniques to sensitive attributes",
            }
        )

    for risk_factor in risk_factors:
        risk_factor["impact"] = float(risk_factor["impact"])
    risk_score = min(round_half_up(sum(f["impact"] for f in risk_factors)), 100)
    average_class_size = k_anonymity["average_class_size"]
    logger.debug(
        "Re-identification risk %d from factors %s",
        risk_score,
        [f["factor"] for f in risk_factors],
    )
    return {
        "risk_score": risk_score,
        "risk_level": risk_level_for_score(100 - risk_score),
        "reidentification_probability": float(reidentification_probability(k_value, average_class_size)),
        "risk_factors": risk_factors,
        "prosecutor_risk": float(prosecutor_risk(k_value)),
        "journalist_risk": float(journalist_risk(k_value, quasi_identifier_count)),
        "marketer_risk": float(marketer_risk(average_class_size)),
    }
