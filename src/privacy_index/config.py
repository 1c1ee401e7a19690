"""
Run configuration for privacy index calculation.

A configuration is a plain dictionary:

- k_threshold : minimum equivalence class size (default 5)
- l_threshold : minimum sensitive value diversity per class (default 2)
- t_threshold : maximum distribution distance per class (default 0.15)
- l_diversity_type : one of distinct, entropy, recursive (default distinct)
- metric_weights : weight per metric, keyed by k_anonymity, l_diversity,
  t_closeness, technique_detection and reidentification_risk
- include_detailed_analysis : whether per-class lists are kept in the report
"""

import copy
import math
import numbers
from typing import Any, Optional

L_DIVERSITY_TYPES: tuple[str, ...] = ("distinct", "entropy", "recursive")

REIDENTIFICATION_RISK_WEIGHT_KEY: str = "reidentification_risk"

# metric_weights key -> id of the plugin computing that metric
METRIC_WEIGHT_KEY_TO_PLUGIN_ID: dict[str, str] = {
    "k_anonymity": "k-anonymity",
    "l_diversity": "l-diversity",
    "t_closeness": "t-closeness",
    "technique_detection": "technique-detection",
}
PLUGIN_ID_TO_METRIC_WEIGHT_KEY: dict[str, str] = {
    plugin_id: key for key, plugin_id in METRIC_WEIGHT_KEY_TO_PLUGIN_ID.items()
}


def default_metric_weights() -> dict[str, float]:
    return {
        "k_anonymity": 0.25,
        "l_diversity": 0.20,
        "t_closeness": 0.15,
        "technique_detection": 0.20,
        REIDENTIFICATION_RISK_WEIGHT_KEY: 0.20,
    }


def default_privacy_config() -> dict[str, Any]:
    """
    Provide the default run configuration.

    Returns
    -------
    Dict[str, Any]
        A fresh dictionary; callers may modify it.
    """
    return {
        "k_threshold": 5,
        "l_threshold": 2,
        "t_threshold": 0.15,
        "l_diversity_type": "distinct",
        "metric_weights": default_metric_weights(),
        "include_detailed_analysis": True,
    }


def merge_privacy_config(overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """
    Merge user overrides onto the default configuration.

    metric_weights is merged key by key, so overriding one weight keeps the
    defaults of the others. Keys that are not part of the default configuration
    are kept as-is.

    Parameters
    ----------
    overrides : Optional[Dict[str, Any]], default=None
        Partial configuration.

    Returns
    -------
    Dict[str, Any]
        The merged configuration; neither input is modified.
    """
    config = default_privacy_config()
    if not overrides:
        return config
    for key, value in overrides.items():
        if key == "metric_weights" and value is not None:
            config["metric_weights"].update(copy.deepcopy(value))
        else:
            config[key] = copy.deepcopy(value)
    return config


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def check_privacy_config(config: dict[str, Any]) -> tuple[bool, list[tuple[str, str]]]:
    """
    Check that a (merged) configuration is usable.

    Parameters
    ----------
    config : Dict[str, Any]
        Configuration to validate, typically the output of merge_privacy_config.

    Returns
    -------
    Tuple[bool, List[Tuple[str, str]]]
        A tuple containing two elements. The first element is a boolean indicating
        if the configuration is valid. The second element is a list of tuples for
        failing keys, where each tuple contains the key and a descriptive error
        message.
    """
    failure_details = []

    k_threshold = config.get("k_threshold")
    if not _is_number(k_threshold) or not math.isfinite(k_threshold) or k_threshold < 1:
        failure_details.append(("k_threshold", f"k_threshold ({k_threshold}) must be a number >= 1"))

    l_threshold = config.get("l_threshold")
    if not _is_number(l_threshold) or not math.isfinite(l_threshold) or l_threshold < 1:
        failure_details.append(("l_threshold", f"l_threshold ({l_threshold}) must be a number >= 1"))

    t_threshold = config.get("t_threshold")
    if not _is_number(t_threshold) or not 0 < t_threshold <= 1:
        failure_details.append(("t_threshold", f"t_threshold ({t_threshold}) must be in (0, 1]"))

    l_diversity_type = config.get("l_diversity_type")
    if l_diversity_type not in L_DIVERSITY_TYPES:
        failure_details.append(
            (
                "l_diversity_type",
                f"l_diversity_type ({l_diversity_type}) must be one of {L_DIVERSITY_TYPES}",
            )
        )

    metric_weights = config.get("metric_weights", {})
    if not isinstance(metric_weights, dict):
        failure_details.append(("metric_weights", "metric_weights must be a mapping"))
    else:
        for key, weight in metric_weights.items():
            if not _is_number(weight) or not math.isfinite(weight) or weight < 0:
                failure_details.append(
                    (
                        f"metric_weights.{key}",
                        f"metric_weights.{key} ({weight}) must be a finite number >= 0",
                    )
                )

    return len(failure_details) == 0, failure_details
