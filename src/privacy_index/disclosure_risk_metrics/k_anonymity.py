"""
K-anonymity disclosure risk metric.

K-anonymity measures re-identification risk: every combination of
quasi-identifier values must be shared by at least k records, so that no record
can be singled out from fewer than k candidates.

Functions:
- calculate_k_anonymity: k value, class size distribution and violating classes
- calculate_k_anonymity_score: 0-100 score of a k-anonymity result
- generate_k_anonymity_insights: short human readable findings
- get_k_anonymity_violation_details: violating record counts, risk level and suggestions
"""

import logging
from typing import Any, Optional

from privacy_index.cancellation import CancellationToken
from privacy_index.constants import QUASI_IDENTIFIER
from privacy_index.dataset import Classification, Dataset
from privacy_index.equivalence_classes import EquivalenceClass, build_equivalence_classes
from privacy_index.utils import round_half_up


def calculate_k_anonymity(
    logger: logging.Logger,
    dataset: Dataset,
    classification: Classification,
    k_threshold: float,
    cancellation: Optional[CancellationToken] = None,
    equivalence_classes: Optional[list[EquivalenceClass]] = None,
) -> dict[str, Any]:
    """
    Calculate k-anonymity for a dataset.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance for logging.
    dataset : Dataset
        Input dataset.
    classification : Classification
        Attribute classification; quasi-identifiers define the equivalence classes.
    k_threshold : float
        Minimum class size to be compliant.
    cancellation : Optional[CancellationToken], default=None
        Checked while grouping rows.
    equivalence_classes : Optional[List[EquivalenceClass]], default=None
        Precomputed classes over the quasi-identifiers; built if not provided.

    Returns
    -------
    Dict[str, Any]
        k_value, satisfies_k_anonymity, k_threshold, equivalence_class_count,
        size_distribution, violating_classes, compliance_rate, average_class_size
        and quasi_identifiers (those that are dataset columns).

    Notes
    -----
    With no quasi-identifiers the whole dataset is a single class and
    k-anonymity is trivially satisfied with k equal to the row count.
    A dataset with quasi-identifiers but no rows has k = 0.
    """
    quasi_identifiers = classification.names_of_type(QUASI_IDENTIFIER)
    present_qids = [qid for qid in quasi_identifiers if qid in dataset.headers]
    total_records = dataset.record_count

    if len(present_qids) == 0:
        logger.debug("No quasi-identifiers, k-anonymity is trivially satisfied")
        return {
            "k_value": total_records,
            "satisfies_k_anonymity": True,
            "k_threshold": k_threshold,
            "equivalence_class_count": 1,
            "size_distribution": {str(total_records): 1},
            "violating_classes": [],
            "compliance_rate": 100.0,
            "average_class_size": float(total_records),
            "quasi_identifiers": [],
        }

    if equivalence_classes is None:
        equivalence_classes = build_equivalence_classes(
            logger, dataset, present_qids, cancellation=cancellation
        )

    size_distribution: dict[str, int] = {}
    violating_classes = []
    compliant_records = 0
    for ec in equivalence_classes:
        size_distribution[str(ec.size)] = size_distribution.get(str(ec.size), 0) + 1
        if ec.size < k_threshold:
            violating_classes.append(ec.to_dict())
        else:
            compliant_records += ec.size

    k_value = min((ec.size for ec in equivalence_classes), default=0)
    compliance_rate = compliant_records / total_records * 100 if total_records > 0 else 0.0
    average_class_size = (
        total_records / len(equivalence_classes) if len(equivalence_classes) > 0 else 0.0
    )
    logger.debug(
        "k-anonymity: k = %d over %d classes, %.1f%% compliant (threshold %s)",
        k_value,
        len(equivalence_classes),
        compliance_rate,
        k_threshold,
    )
    return {
        "k_value": k_value,
        "satisfies_k_anonymity": len(equivalence_classes) > 0 and k_value >= k_threshold,
        "k_threshold": k_threshold,
        "equivalence_class_count": len(equivalence_classes),
        "size_distribution": size_distribution,
        "violating_classes": violating_classes,
        "compliance_rate": float(compliance_rate),
        "average_class_size": float(average_class_size),
        "quasi_identifiers": present_qids,
    }


def calculate_k_anonymity_score(result: dict[str, Any]) -> int:
    """
    Score a k-anonymity result on a 0-100 scale.

    50 points come from min(k / threshold, 1), 30 from the compliance rate and
    20 from the average class size relative to the threshold.
    """
    k_threshold = result["k_threshold"]
    k_score = min(result["k_value"] / k_threshold, 1.0) * 50
    compliance_score = result["compliance_rate"] / 100 * 30
    if result["average_class_size"] < k_threshold:
        class_size_score = result["average_class_size"] / k_threshold * 20
    else:
        class_size_score = 20.0
    return round_half_up(min(k_score + compliance_score + class_size_score, 100.0))


def _count_unique_records(result: dict[str, Any]) -> int:
    return sum(1 for ec in result["violating_classes"] if ec["size"] == 1)


def generate_k_anonymity_insights(result: dict[str, Any]) -> list[str]:
    insights = []
    unique_records = _count_unique_records(result)
    if unique_records > 0:
        insights.append(f"{unique_records} record(s) are uniquely identifiable and at high risk")
    if result["satisfies_k_anonymity"]:
        insights.append(
            f"Dataset achieves k={result['k_value']} anonymity (threshold: {result['k_threshold']})"
        )
    else:
        insights.append(f"k={result['k_value']} is below the threshold of {result['k_threshold']}")
    if len(result["quasi_identifiers"]) > 5:
        insights.append(
            f"High number of quasi-identifiers ({len(result['quasi_identifiers'])}) "
            "increases re-identification risk"
        )
    return insights


def get_k_anonymity_violation_details(result: dict[str, Any]) -> dict[str, Any]:
    """
    Summarize the violating equivalence classes of a k-anonymity result.

    Parameters
    ----------
    result : Dict[str, Any]
        Output of calculate_k_anonymity (with violating class bodies).

    Returns
    -------
    Dict[str, Any]
        total_violating_records, unique_records, risk_level (high if k <= 2,
        medium if k is below the threshold, else low) and suggestions.
    """
    total_violating_records = sum(ec["size"] for ec in result["violating_classes"])
    unique_records = _count_unique_records(result)

    if result["k_value"] <= 2:
        risk_level = "high"
    elif result["k_value"] < result["k_threshold"]:
        risk_level = "medium"
    else:
        risk_level = "low"

    suggestions = []
    if unique_records > 0:
        suggestions.append(
            f"Consider suppressing or generalizing the {unique_records} unique record(s) "
            "that can be individually identified."
        )
    if len(result["quasi_identifiers"]) > 3:
        suggestions.append(
            "Reducing the number of quasi-identifiers or generalizing some attributes "
            "would increase k-values."
        )
    if result["k_value"] < result["k_threshold"]:
        suggestions.append(
            f"Apply generalization to quasi-identifiers to achieve k={result['k_threshold']} anonymity."
        )

    return {
        "total_violating_records": total_violating_records,
        "unique_records": unique_records,
        "risk_level": risk_level,
        "suggestions": suggestions,
    }
