"""
Shared utility functions for privacy metric computation.

This module provides utility functions that support the privacy metrics and the
aggregation layer. It includes functions for:

- Rounding and score-to-label mappings (status, risk level, grade)
- Distribution helpers (frequency distributions, Shannon entropy)
- numba-compiled kernels for the CDF-difference Earth Mover's Distance, for one
  distribution or many sparse ones at once
"""

import math
from typing import Iterable

import numba
import numpy as np
import pandas as pd
from scipy.stats import entropy

PRIORITY_ORDER: dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, with halves rounded up.

    Python's round() uses banker's rounding; scores are reported with the
    conventional rounding instead, so that e.g. 72.5 becomes 73.

    Parameters
    ----------
    value : float
        Value to round.

    Returns
    -------
    int
        Rounded value.
    """
    return int(math.floor(value + 0.5))


def metric_status(score: float) -> str:
    """
    Map a 0-100 metric score to a status: pass (>= 70), warning (>= 40), else fail.
    """
    if score >= 70:
        return "pass"
    if score >= 40:
        return "warning"
    return "fail"


def risk_level_for_score(score: float) -> str:
    """
    Map a 0-100 privacy score (higher is better) to a risk level.

    Parameters
    ----------
    score : float
        Privacy score.

    Returns
    -------
    str
        One of minimal (>= 90), low (>= 70), medium (>= 50), high (>= 30), critical.
    """
    if score >= 90:
        return "minimal"
    if score >= 70:
        return "low"
    if score >= 50:
        return "medium"
    if score >= 30:
        return "high"
    return "critical"


def grade_for_score(score: float) -> str:
    """
    Map a 0-100 privacy score to a letter grade A (>= 90), B, C, D (>= 60) or F.
    """
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def value_counts(values: Iterable[str]) -> dict[str, int]:
    """
    Count occurrences of each value, preserving order of first appearance.

    Parameters
    ----------
    values : Iterable[str]
        Values to count.

    Returns
    -------
    Dict[str, int]
        Mapping from value to count.
    """
    counts: dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


def probability_distribution(values: pd.Series) -> dict[str, float]:
    """
    Compute the empirical probability of each distinct value.

    Parameters
    ----------
    values : pd.Series
        Values of one attribute.

    Returns
    -------
    Dict[str, float]
        Mapping from value to probability; empty if there are no values.
    """
    if len(values) == 0:
        return {}
    probabilities = values.value_counts(normalize=True, sort=False)
    return {str(value): float(p) for value, p in probabilities.items()}


def shannon_entropy(counts: Iterable[int]) -> float:
    """
    Compute the Shannon entropy (base 2) of a frequency distribution.

    Parameters
    ----------
    counts : Iterable[int]
        Frequencies of each distinct value; zero counts are ignored.

    Returns
    -------
    float
        -sum(p * log2(p)); 0.0 for an empty or single-valued distribution.

    Examples
    --------
    >>> shannon_entropy([5])
    0.0
    >>> shannon_entropy([1, 1, 1, 1])
    2.0
    """
    counts_arr = np.asarray([c for c in counts if c > 0], dtype=np.float64)
    if len(counts_arr) <= 1:
        return 0.0
    return float(entropy(counts_arr, base=2))


@numba.jit(nopython=True)
def cumulative_distribution_distance(local_probs: np.ndarray, global_probs: np.ndarray) -> float:
    """
    Sum of absolute differences between two running CDFs, normalized by support size.

    Both arrays must be aligned on the same ordered support. This is the
    Earth Mover's Distance used for numerical sensitive attributes.

    Parameters
    ----------
    local_probs : np.ndarray
        Probabilities of each support value within an equivalence class.
    global_probs : np.ndarray
        Probabilities of each support value across the dataset.

    Returns
    -------
    float
        sum_i |CDF_local(i) - CDF_global(i)| / max(n, 1).

    Examples
    --------
    >>> cumulative_distribution_distance(np.array([1.0, 0.0]), np.array([0.5, 0.5]))
    0.25
    """
    local_cdf = 0.0
    global_cdf = 0.0
    total = 0.0
    n = len(local_probs)
    for i in range(n):
        local_cdf += local_probs[i]
        global_cdf += global_probs[i]
        total += abs(local_cdf - global_cdf)
    return total / max(n, 1)


@numba.jit(nopython=True)
def sparse_cumulative_distribution_distances(
    offsets: np.ndarray,
    positions: np.ndarray,
    local_probs: np.ndarray,
    global_cdf: np.ndarray,
    global_cdf_prefix: np.ndarray,
) -> np.ndarray:
    """
    cumulative_distribution_distance of many local distributions against one global distribution.

    Each local distribution is given only by its non-zero entries, so the cost
    is proportional to the number of entries (times log of the support size)
    rather than to the number of distributions times the support size.

    Parameters
    ----------
    offsets : np.ndarray
        Entries of distribution c are offsets[c]:offsets[c + 1]; length n_distributions + 1.
    positions : np.ndarray
        Support position of each entry, ascending within a distribution.
    local_probs : np.ndarray
        Probability of each entry.
    global_cdf : np.ndarray
        Running CDF of the global distribution over the ordered support.
    global_cdf_prefix : np.ndarray
        Prefix sums of global_cdf, with a leading 0; length support size + 1.

    Returns
    -------
    np.ndarray
        One distance per distribution.
    """
    n = len(global_cdf)
    n_distributions = len(offsets) - 1
    distances = np.zeros(n_distributions)
    for c in range(n_distributions):
        start = offsets[c]
        end = offsets[c + 1]
        if start == end:
            distances[c] = global_cdf_prefix[n] / max(n, 1)
            continue
        # the local CDF is 0 before the first entry
        total = global_cdf_prefix[positions[start]]
        local_cdf = 0.0
        for j in range(start, end):
            local_cdf += local_probs[j]
            a = positions[j]
            b = positions[j + 1] if j + 1 < end else n
            # the local CDF is constant on [a, b) and the global CDF is non-decreasing
            m = a + np.searchsorted(global_cdf[a:b], local_cdf, side="right")
            total += local_cdf * (m - a) - (global_cdf_prefix[m] - global_cdf_prefix[a])
            total += (global_cdf_prefix[b] - global_cdf_prefix[m]) - local_cdf * (b - m)
        distances[c] = total / max(n, 1)
    return distances
