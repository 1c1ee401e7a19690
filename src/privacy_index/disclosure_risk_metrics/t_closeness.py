"""
T-closeness disclosure risk metric.

T-closeness measures attribute disclosure risk by comparing the distribution of
a sensitive attribute within each equivalence class to its distribution over the
whole dataset. The distance between the two is the Earth Mover's Distance:

- categorical attributes: total variation distance, 1/2 * sum |p_local - p_global|
- numerical attributes: sum of absolute differences between the running CDFs
  over the ordered support, divided by the support size

Only the first sensitive attribute (in classification order) is analyzed.

References
----------
N. Li, T. Li, and S. Venkatasubramanian, "t-Closeness: Privacy Beyond
k-Anonymity and l-Diversity," in 2007 IEEE 23rd International Conference on
Data Engineering, Istanbul, Turkey: IEEE, 2007, pp. 106-115.
doi: 10.1109/ICDE.2007.367856.
"""

import logging
from typing import Any, Optional

import numpy as np
import pandas as pd
from first import first  # type: ignore[import-untyped]

from privacy_index.cancellation import CancellationToken, check_cancelled
from privacy_index.constants import QUASI_IDENTIFIER, SENSITIVE
from privacy_index.dataset import Classification, Dataset
from privacy_index.equivalence_classes import EquivalenceClass, build_equivalence_classes
from privacy_index.pandas_utils import normalize_values
from privacy_index.utils import (
    cumulative_distribution_distance,
    probability_distribution,
    round_half_up,
    sparse_cumulative_distribution_distances,
)


def categorical_emd(local_distribution: dict[str, float], global_distribution: dict[str, float]) -> float:
    """
    Earth Mover's Distance between two categorical distributions (total variation distance).

    Parameters
    ----------
    local_distribution : Dict[str, float]
        Probability of each value within an equivalence class.
    global_distribution : Dict[str, float]
        Probability of each value across the dataset.

    Returns
    -------
    float
        Distance in [0, 1]; 0 if the distributions are equal.
    """
    support = set(local_distribution) | set(global_distribution)
    return 0.5 * sum(
        abs(local_distribution.get(value, 0.0) - global_distribution.get(value, 0.0))
        for value in support
    )


def order_numerical_support(values: list[str]) -> list[str]:
    """
    Order values for the numerical Earth Mover's Distance.

    Values that parse as numbers come first, ascending by numeric value; the
    others follow in lexical order.

    Examples
    --------
    >>> order_numerical_support(["10", "n/a", "9.5", "abc"])
    ['9.5', '10', 'abc', 'n/a']
    """
    parsed = pd.to_numeric(pd.Series(values, dtype=object), errors="coerce")
    numeric = sorted(
        ((float(number), value) for value, number in zip(values, parsed) if not pd.isna(number)),
    )
    non_numeric = sorted(value for value, number in zip(values, parsed) if pd.isna(number))
    return [value for _, value in numeric] + non_numeric


def numerical_emd(local_distribution: dict[str, float], global_distribution: dict[str, float]) -> float:
    """
    Earth Mover's Distance between two distributions over an ordered numeric support.

    Parameters
    ----------
    local_distribution : Dict[str, float]
        Probability of each value within an equivalence class.
    global_distribution : Dict[str, float]
        Probability of each value across the dataset.

    Returns
    -------
    float
        Sum of absolute CDF differences normalized by the support size.
    """
    support = order_numerical_support(list(set(local_distribution) | set(global_distribution)))
    local_probs = np.array([local_distribution.get(value, 0.0) for value in support], dtype=np.float64)
    global_probs = np.array([global_distribution.get(value, 0.0) for value in support], dtype=np.float64)
    return float(cumulative_distribution_distance(local_probs, global_probs))


def class_distances(
    equivalence_classes: list[EquivalenceClass],
    sensitive_values: pd.Series,
    is_numerical: bool,
) -> tuple[list[dict[str, float]], np.ndarray]:
    """
    Local distribution of every equivalence class and its distance to the global distribution.

    Counts (class, value) pairs once over all rows instead of building one
    distribution per class; the distances equal those of numerical_emd or
    categorical_emd applied class by class.

    Parameters
    ----------
    equivalence_classes : List[EquivalenceClass]
        Classes partitioning the rows of sensitive_values.
    sensitive_values : pd.Series
        Normalized sensitive values, one per row.
    is_numerical : bool
        Whether to use the ordered (numerical) distance.

    Returns
    -------
    Tuple[List[Dict[str, float]], np.ndarray]
        Local distributions (value -> probability) and distances, aligned with
        equivalence_classes.
    """
    n_classes = len(equivalence_classes)
    if n_classes == 0:
        return [], np.zeros(0)

    value_codes, uniques = pd.factorize(sensitive_values, sort=False)
    support = [str(value) for value in uniques]
    if is_numerical:
        ordered_support = order_numerical_support(support)
        rank = {value: i for i, value in enumerate(ordered_support)}
        value_codes = np.array([rank[value] for value in support], dtype=np.int64)[value_codes]
        support = ordered_support
    n_support = len(support)

    sizes = np.array([ec.size for ec in equivalence_classes], dtype=np.int64)
    rows = np.concatenate([np.asarray(ec.row_indices, dtype=np.int64) for ec in equivalence_classes])
    row_classes = np.repeat(np.arange(n_classes, dtype=np.int64), sizes)
    # sorted by class, then by support position
    pair_keys, pair_counts = np.unique(row_classes * n_support + value_codes[rows], return_counts=True)
    pair_classes = pair_keys // n_support
    pair_values = pair_keys % n_support
    local_probs = pair_counts / sizes[pair_classes]
    global_probs = np.bincount(value_codes, minlength=n_support) / len(value_codes)
    offsets = np.concatenate(([0], np.cumsum(np.bincount(pair_classes, minlength=n_classes))))

    if is_numerical:
        global_cdf = np.cumsum(global_probs)
        distances = sparse_cumulative_distribution_distances(
            offsets,
            pair_values,
            local_probs,
            global_cdf,
            np.concatenate(([0.0], np.cumsum(global_cdf))),
        )
    else:
        # values absent from a class contribute their global probability
        differences = np.abs(local_probs - global_probs[pair_values]) - global_probs[pair_values]
        distances = 0.5 * (global_probs.sum() + np.bincount(pair_classes, weights=differences, minlength=n_classes))
        distances = np.clip(distances, 0.0, 1.0)

    values = pair_values.tolist()
    probs = local_probs.tolist()
    bounds = offsets.tolist()
    local_distributions = [
        {support[value]: prob for value, prob in zip(values[bounds[c] : bounds[c + 1]], probs[bounds[c] : bounds[c + 1]])}
        for c in range(n_classes)
    ]
    return local_distributions, distances


def _empty_t_closeness_result(t_threshold: float, sensitive_attribute: str) -> dict[str, Any]:
    return {
        "max_distance": 0.0,
        "satisfies_t_closeness": True,
        "t_threshold": t_threshold,
        "class_results": [],
        "violating_classes": [],
        "compliance_rate": 100.0,
        "global_distribution": {},
        "sensitive_attribute": sensitive_attribute,
        "average_distance": 0.0,
    }


def calculate_t_closeness(
    logger: logging.Logger,
    dataset: Dataset,
    classification: Classification,
    t_threshold: float,
    cancellation: Optional[CancellationToken] = None,
    equivalence_classes: Optional[list[EquivalenceClass]] = None,
) -> dict[str, Any]:
    """
    Calculate t-closeness of the first sensitive attribute across equivalence classes.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance for logging.
    dataset : Dataset
        Input dataset.
    classification : Classification
        Attribute classification. The first sensitive attribute is analyzed; it
        is treated as numerical iff its data pattern is numeric.
    t_threshold : float
        Maximum distance to be compliant.
    cancellation : Optional[CancellationToken], default=None
        Checked while grouping rows and before the class distances.
    equivalence_classes : Optional[List[EquivalenceClass]], default=None
        Precomputed classes over the quasi-identifiers; built if not provided.

    Returns
    -------
    Dict[str, Any]
        max_distance, satisfies_t_closeness, t_threshold, class_results,
        violating_classes (ids), compliance_rate, global_distribution,
        sensitive_attribute and average_distance.

    Notes
    -----
    If there is no sensitive attribute the metric is vacuous, with a maximum
    distance of 0 and an empty sensitive_attribute.
    """
    sensitive_attr = first(classification.of_type(SENSITIVE))
    if sensitive_attr is None:
        logger.debug("No sensitive attribute, t-closeness is not applicable")
        return _empty_t_closeness_result(t_threshold, "")
    if sensitive_attr.name not in dataset.headers:
        logger.warning("Sensitive attribute (%s) is not a dataset column", sensitive_attr.name)
        return _empty_t_closeness_result(t_threshold, sensitive_attr.name)

    if equivalence_classes is None:
        qids = [qid for qid in classification.names_of_type(QUASI_IDENTIFIER) if qid in dataset.headers]
        equivalence_classes = build_equivalence_classes(logger, dataset, qids, cancellation=cancellation)

    sensitive_values = normalize_values(dataset.frame[sensitive_attr.name])
    global_distribution = probability_distribution(sensitive_values)
    is_numerical = sensitive_attr.data_pattern == "numeric"

    check_cancelled(cancellation, "t-closeness class distances")
    local_distributions, distances = class_distances(equivalence_classes, sensitive_values, is_numerical)

    class_results = []
    violating_classes = []
    compliant_records = 0
    for ec, local_distribution, distance in zip(equivalence_classes, local_distributions, distances.tolist()):
        satisfies = distance <= t_threshold
        class_results.append(
            {
                "equivalence_class_id": ec.id,
                "distance": distance,
                "satisfies_t_closeness": satisfies,
                "local_distribution": local_distribution,
            }
        )
        if satisfies:
            compliant_records += ec.size
        else:
            violating_classes.append(ec.id)

    total_records = dataset.record_count
    max_distance = max((c["distance"] for c in class_results), default=0.0)
    compliance_rate = compliant_records / total_records * 100 if total_records > 0 else 0.0
    average_distance = (
        sum(c["distance"] for c in class_results) / len(class_results) if len(class_results) > 0 else 0.0
    )
    logger.debug(
        "t-closeness (%s, %s): max distance %.4f over %d classes, %.1f%% compliant (threshold %s)",
        sensitive_attr.name,
        "numerical" if is_numerical else "categorical",
        max_distance,
        len(class_results),
        compliance_rate,
        t_threshold,
    )
    return {
        "max_distance": float(max_distance),
        "satisfies_t_closeness": max_distance <= t_threshold,
        "t_threshold": t_threshold,
        "class_results": class_results,
        "violating_classes": violating_classes,
        "compliance_rate": float(compliance_rate),
        "global_distribution": global_distribution,
        "sensitive_attribute": sensitive_attr.name,
        "average_distance": float(average_distance),
    }


def calculate_t_closeness_score(result: dict[str, Any]) -> int:
    """
    Score a t-closeness result on a 0-100 scale.

    Up to 50 points from the maximum distance (full if within the threshold,
    linearly penalized above it), 30 from the compliance rate and 20 from
    1 - average distance. A result without sensitive attribute scores a neutral 50.
    """
    if not result["sensitive_attribute"]:
        return 50
    t_threshold = result["t_threshold"]
    max_distance = result["max_distance"]
    if max_distance <= t_threshold:
        distance_score = 50.0
    else:
        distance_score = max(0.0, 50 - (max_distance - t_threshold) / t_threshold * 50)
    compliance_score = result["compliance_rate"] / 100 * 30
    average_distance_score = max(0.0, (1 - result["average_distance"]) * 20)
    return round_half_up(min(distance_score + compliance_score + average_distance_score, 100.0))


def _count_high_distance_classes(result: dict[str, Any]) -> int:
    return sum(1 for c in result["class_results"] if c["distance"] > result["t_threshold"])


def generate_t_closeness_insights(result: dict[str, Any]) -> list[str]:
    if not result["sensitive_attribute"]:
        return ["No sensitive attribute classified, t-closeness not applicable"]

    insights = []
    if result["satisfies_t_closeness"]:
        insights.append(
            f"Max distribution distance: {result['max_distance']:.3f} "
            f"(threshold: {result['t_threshold']})"
        )
    else:
        insights.append(
            f"Max distance {result['max_distance']:.3f} exceeds threshold {result['t_threshold']}"
        )
    high_distance_classes = _count_high_distance_classes(result)
    if high_distance_classes > 0:
        insights.append(f"{high_distance_classes} class(es) have skewed distributions")
    return insights


def get_t_closeness_insights(result: dict[str, Any]) -> dict[str, Any]:
    """
    Assess a t-closeness result.

    Parameters
    ----------
    result : Dict[str, Any]
        Output of calculate_t_closeness.

    Returns
    -------
    Dict[str, Any]
        risk_level (high if the maximum distance exceeds twice the threshold,
        medium if it exceeds the threshold, else low), vulnerabilities and
        suggestions.
    """
    vulnerabilities = []
    suggestions = []
    max_distance = result["max_distance"]
    t_threshold = result["t_threshold"]

    if max_distance > t_threshold * 2:
        risk_level = "high"
        vulnerabilities.append("Significant distributional skew detected in some equivalence classes.")
    elif max_distance > t_threshold:
        risk_level = "medium"
        vulnerabilities.append(
            f"Maximum distance ({max_distance:.3f}) exceeds threshold ({t_threshold})."
        )
    else:
        risk_level = "low"

    high_distance_classes = _count_high_distance_classes(result)
    if high_distance_classes > 0:
        vulnerabilities.append(
            f"{high_distance_classes} equivalence class(es) have distributional skew "
            "that could enable inference attacks."
        )

    if not result["satisfies_t_closeness"]:
        suggestions.append(
            "Apply data swapping or noise addition to sensitive attributes to reduce distributional skew."
        )
        suggestions.append(
            "Consider generalizing quasi-identifiers to create larger, more diverse equivalence classes."
        )
    if result["average_distance"] > t_threshold / 2:
        suggestions.append(
            "The average distributional distance is relatively high. "
            "Consider applying bucketization to sensitive values."
        )

    return {"risk_level": risk_level, "vulnerabilities": vulnerabilities, "suggestions": suggestions}
