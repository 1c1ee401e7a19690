"""
L-diversity disclosure risk metric.

L-diversity measures attribute disclosure risk by evaluating whether the
sensitive values within each equivalence class are diverse enough to prevent
attribute inference attacks. When several sensitive attributes exist, their
normalized values are concatenated per row and analyzed as one combined value.

Three criteria are supported:

- distinct: at least l distinct sensitive values per class
- entropy: Shannon entropy (base 2) of each class is at least log2(l)
- recursive: recursive (c, l)-diversity with c = 2

Functions:
- calculate_l_diversity: per-class and aggregate l-diversity
- calculate_l_diversity_score: 0-100 score of an l-diversity result
- generate_l_diversity_insights: short human readable findings
- get_l_diversity_insights: risk level, vulnerabilities and suggestions

References
----------
A. Machanavajjhala, J. Gehrke, D. Kifer, and M. Venkitasubramaniam,
"L-diversity: privacy beyond k-anonymity," in 22nd International Conference
on Data Engineering (ICDE'06), Atlanta, GA, USA: IEEE, 2006, pp. 24-24.
doi: 10.1109/ICDE.2006.1.
"""

import logging
import math
from typing import Any, Optional

from privacy_index.cancellation import CancellationToken
from privacy_index.config import L_DIVERSITY_TYPES
from privacy_index.constants import EPSILON, QUASI_IDENTIFIER, SENSITIVE, SENSITIVE_VALUE_SEPARATOR
from privacy_index.dataset import Classification, Dataset
from privacy_index.equivalence_classes import EquivalenceClass, build_equivalence_classes
from privacy_index.pandas_utils import join_row_keys, normalize_frame
from privacy_index.utils import round_half_up, shannon_entropy, value_counts

# c of recursive (c, l)-diversity
RECURSIVE_C: int = 2


def _satisfies_recursive_l_diversity(distribution: dict[str, int], l_threshold: float, c: int) -> bool:
    """
    Recursive (c, l)-diversity: the most frequent value must occur fewer than
    c times the total of the remaining values.
    """
    frequencies = sorted(distribution.values(), reverse=True)
    if len(frequencies) < l_threshold:
        return False
    return frequencies[0] < c * sum(frequencies[1:])


def _class_l_diversity(
    equivalence_class_id: str,
    sensitive_values: list[str],
    l_threshold: float,
    diversity_type: str,
) -> dict[str, Any]:
    distribution = value_counts(sensitive_values)
    distinct_count = len(distribution)
    entropy = shannon_entropy(distribution.values())

    if diversity_type == "entropy":
        satisfies = entropy + EPSILON >= math.log2(l_threshold)
    elif diversity_type == "recursive":
        satisfies = _satisfies_recursive_l_diversity(distribution, l_threshold, RECURSIVE_C)
    else:
        satisfies = distinct_count >= l_threshold

    return {
        "equivalence_class_id": equivalence_class_id,
        "distinct_count": distinct_count,
        "entropy": entropy,
        "satisfies_l_diversity": bool(satisfies),
        "sensitive_value_distribution": distribution,
    }


def calculate_l_diversity(
    logger: logging.Logger,
    dataset: Dataset,
    classification: Classification,
    l_threshold: float,
    diversity_type: str = "distinct",
    cancellation: Optional[CancellationToken] = None,
    equivalence_classes: Optional[list[EquivalenceClass]] = None,
) -> dict[str, Any]:
    """
    Calculate l-diversity of the sensitive attributes across equivalence classes.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance for logging.
    dataset : Dataset
        Input dataset.
    classification : Classification
        Attribute classification; quasi-identifiers define the equivalence
        classes and sensitive attributes are the values whose diversity is measured.
    l_threshold : float
        Minimum diversity to be compliant.
    diversity_type : str, optional
        One of distinct, entropy or recursive; unknown values fall back to distinct.
    cancellation : Optional[CancellationToken], default=None
        Checked while grouping rows.
    equivalence_classes : Optional[List[EquivalenceClass]], default=None
        Precomputed classes over the quasi-identifiers; built if not provided.

    Returns
    -------
    Dict[str, Any]
        l_value (minimum distinct count over classes), satisfies_l_diversity,
        l_threshold, diversity_type, class_results, violating_classes (ids),
        compliance_rate, sensitive_attributes (those that are dataset columns)
        and average_entropy.

    Notes
    -----
    If there are no sensitive attributes the metric is vacuously satisfied with
    l_value = 0 and a compliance rate of 100.
    """
    if diversity_type not in L_DIVERSITY_TYPES:
        logger.warning("Unknown l-diversity type (%s), using distinct", diversity_type)
        diversity_type = "distinct"

    sensitive_attributes = classification.names_of_type(SENSITIVE)
    present_sensitive = [attr for attr in sensitive_attributes if attr in dataset.headers]
    if len(present_sensitive) == 0:
        logger.debug("No sensitive attributes, l-diversity is not applicable")
        return {
            "l_value": 0,
            "satisfies_l_diversity": True,
            "l_threshold": l_threshold,
            "diversity_type": diversity_type,
            "class_results": [],
            "violating_classes": [],
            "compliance_rate": 100.0,
            "sensitive_attributes": present_sensitive,
            "average_entropy": 0.0,
        }

    if equivalence_classes is None:
        qids = [qid for qid in classification.names_of_type(QUASI_IDENTIFIER) if qid in dataset.headers]
        equivalence_classes = build_equivalence_classes(logger, dataset, qids, cancellation=cancellation)

    sensitive_values = join_row_keys(
        normalize_frame(dataset.frame[present_sensitive]),
        present_sensitive,
        SENSITIVE_VALUE_SEPARATOR,
    ).tolist()

    class_results = []
    violating_classes = []
    compliant_records = 0
    for ec in equivalence_classes:
        class_result = _class_l_diversity(
            ec.id,
            [sensitive_values[idx] for idx in ec.row_indices],
            l_threshold,
            diversity_type,
        )
        class_results.append(class_result)
        if class_result["satisfies_l_diversity"]:
            compliant_records += ec.size
        else:
            violating_classes.append(ec.id)

    total_records = dataset.record_count
    l_value = min((c["distinct_count"] for c in class_results), default=0)
    compliance_rate = compliant_records / total_records * 100 if total_records > 0 else 0.0
    average_entropy = (
        sum(c["entropy"] for c in class_results) / len(class_results) if len(class_results) > 0 else 0.0
    )
    logger.debug(
        "l-diversity (%s): l = %d over %d classes, %.1f%% compliant (threshold %s)",
        diversity_type,
        l_value,
        len(class_results),
        compliance_rate,
        l_threshold,
    )
    return {
        "l_value": l_value,
        "satisfies_l_diversity": len(class_results) > 0 and l_value >= l_threshold,
        "l_threshold": l_threshold,
        "diversity_type": diversity_type,
        "class_results": class_results,
        "violating_classes": violating_classes,
        "compliance_rate": float(compliance_rate),
        "sensitive_attributes": present_sensitive,
        "average_entropy": float(average_entropy),
    }


def calculate_l_diversity_score(result: dict[str, Any]) -> int:
    """
    Score an l-diversity result on a 0-100 scale.

    40 points come from min(l / threshold, 1), 35 from the compliance rate and
    25 from the average entropy relative to log2(2 * threshold). A result
    without sensitive attributes scores a neutral 50.
    """
    if len(result["sensitive_attributes"]) == 0:
        return 50
    l_threshold = result["l_threshold"]
    l_score = min(result["l_value"] / l_threshold, 1.0) * 40
    compliance_score = result["compliance_rate"] / 100 * 35
    max_expected_entropy = math.log2(l_threshold * 2)
    entropy_score = min(result["average_entropy"] / max_expected_entropy, 1.0) * 25
    return round_half_up(min(l_score + compliance_score + entropy_score, 100.0))


def _count_low_entropy_classes(result: dict[str, Any]) -> int:
    return sum(1 for c in result["class_results"] if c["entropy"] < 1 and c["distinct_count"] > 1)


def generate_l_diversity_insights(result: dict[str, Any]) -> list[str]:
    if len(result["sensitive_attributes"]) == 0:
        return ["No sensitive attributes classified, l-diversity not applicable"]

    insights = []
    if result["satisfies_l_diversity"]:
        insights.append(
            f"Dataset achieves {result['l_value']}-diversity (threshold: {result['l_threshold']})"
        )
    else:
        insights.append(f"l={result['l_value']} is below the threshold of {result['l_threshold']}")

    homogeneous_classes = sum(1 for c in result["class_results"] if c["distinct_count"] == 1)
    if homogeneous_classes > 0:
        insights.append(
            f"{homogeneous_classes} class(es) have homogeneous sensitive values (high risk)"
        )
    low_entropy_classes = _count_low_entropy_classes(result)
    if low_entropy_classes > 0:
        insights.append(
            f"{low_entropy_classes} class(es) have skewed sensitive value distributions"
        )
    return insights


def get_l_diversity_insights(result: dict[str, Any]) -> dict[str, Any]:
    """
    Assess an l-diversity result.

    Parameters
    ----------
    result : Dict[str, Any]
        Output of calculate_l_diversity.

    Returns
    -------
    Dict[str, Any]
        risk_level (high if l <= 1, medium if l is below the threshold, else low),
        vulnerabilities and suggestions.
    """
    vulnerabilities = []
    suggestions = []

    if result["l_value"] <= 1:
        risk_level = "high"
        vulnerabilities.append(
            "Some equivalence classes have only one unique sensitive value, "
            "enabling attribute disclosure."
        )
    elif result["l_value"] < result["l_threshold"]:
        risk_level = "medium"
        vulnerabilities.append(
            f"Dataset achieves {result['l_value']}-diversity "
            f"but requires {result['l_threshold']}-diversity."
        )
    else:
        risk_level = "low"

    low_entropy_classes = _count_low_entropy_classes(result)
    if low_entropy_classes > 0:
        vulnerabilities.append(
            f"{low_entropy_classes} equivalence class(es) have low entropy, "
            "indicating skewed sensitive value distributions."
        )

    if result["l_value"] < result["l_threshold"]:
        suggestions.append(
            "Apply bucketization or anatomy techniques to increase diversity in sensitive attributes."
        )
    if result["average_entropy"] < math.log2(result["l_threshold"]):
        suggestions.append(
            "Consider using entropy l-diversity as the criterion for a stronger privacy guarantee."
        )
    if len(result["violating_classes"]) > 0:
        suggestions.append(
            f"Address the {len(result['violating_classes'])} violating equivalence class(es) "
            "by generalizing quasi-identifiers."
        )

    return {"risk_level": risk_level, "vulnerabilities": vulnerabilities, "suggestions": suggestions}
