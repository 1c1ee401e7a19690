"""
Privacy index calculation.

Runs the registered privacy metric plugins, assesses re-identification risk and
aggregates everything into one report with an overall 0-100 score, a letter
grade, a risk level and prioritized recommendations.
"""

import datetime
import json
import logging
import time
from concurrent.futures import Executor
from typing import Any, Optional

import numpy as np

from privacy_index.cancellation import CancellationToken, check_cancelled
from privacy_index.config import (
    METRIC_WEIGHT_KEY_TO_PLUGIN_ID,
    REIDENTIFICATION_RISK_WEIGHT_KEY,
    check_privacy_config,
    merge_privacy_config,
)
from privacy_index.constants import DIRECT_IDENTIFIER
from privacy_index.dataset import Classification, Dataset, validate_analysis_input
from privacy_index.disclosure_risk_metrics.k_anonymity import get_k_anonymity_violation_details
from privacy_index.disclosure_risk_metrics.l_diversity import get_l_diversity_insights
from privacy_index.plugins.base import PluginInput, PrivacyPlugin
from privacy_index.plugins.builtin import (
    KAnonymityPlugin,
    LDiversityPlugin,
    TClosenessPlugin,
    TechniqueDetectionPlugin,
    register_built_in_plugins,
)
from privacy_index.plugins.registry import PluginRegistry
from privacy_index.risk import assess_reidentification_risk
from privacy_index.utils import PRIORITY_ORDER, grade_for_score, metric_status, risk_level_for_score, round_half_up

REIDENTIFICATION_RISK_METRIC_NAME = "Re-identification Risk"

# report key -> built-in plugin computing it
REPORT_DETAIL_PLUGINS: dict[str, type[PrivacyPlugin]] = {
    "k_anonymity": KAnonymityPlugin,
    "l_diversity": LDiversityPlugin,
    "t_closeness": TClosenessPlugin,
    "technique_detection": TechniqueDetectionPlugin,
}

# expected impact of a technique recommendation, by its original priority
TECHNIQUE_RECOMMENDATION_IMPACT: dict[str, int] = {"critical": 15, "high": 10}
DEFAULT_TECHNIQUE_RECOMMENDATION_IMPACT: int = 5


def format_technique_name(technique: str) -> str:
    """
    Format a technique tag for display.

    Examples
    --------
    >>> format_technique_name("noise-addition")
    'Noise Addition'
    """
    return " ".join(word[:1].upper() + word[1:] for word in technique.split("-"))


def _detail_output(
    logger: logging.Logger,
    registry: PluginRegistry,
    report_key: str,
    executed_outputs: dict[str, dict[str, Any]],
    plugin_input: PluginInput,
) -> dict[str, Any]:
    """
    Output of the plugin computing one detailed metric of the report.

    Reuses the output of execute_all where the plugin ran; otherwise (disabled,
    inapplicable, failed or unregistered) the built-in plugin is run directly,
    with the registered configuration when the registered plugin is the built-in one.
    """
    plugin_cls = REPORT_DETAIL_PLUGINS[report_key]
    plugin_id = plugin_cls.metadata.id
    if plugin_id in executed_outputs:
        return executed_outputs[plugin_id]
    registered = registry.get_plugin(plugin_id)
    plugin_config = registered.config if registered is not None and isinstance(registered.plugin, plugin_cls) else None
    logger.debug("Computing %s directly for the report details", plugin_id)
    return plugin_cls().calculate(logger, plugin_input, plugin_config)


def calculate_metric_scores(
    aggregated: dict[str, Any],
    reidentification_risk: dict[str, Any],
    risk_weight: float,
) -> list[dict[str, Any]]:
    """
    Build the per metric score breakdown of the report.

    Parameters
    ----------
    aggregated : Dict[str, Any]
        Output of PluginRegistry.execute_all.
    reidentification_risk : Dict[str, Any]
        Output of assess_reidentification_risk.
    risk_weight : float
        Configured (unnormalized) weight of the re-identification risk metric.

    Returns
    -------
    List[Dict[str, Any]]
        One entry (name, score, weight, weighted_score, status, details) per
        executed plugin, plus the re-identification risk metric scored as
        100 - risk score.

    Notes
    -----
    Plugin weights are normalized over the plugins by the registry. The risk
    metric is added to the same scale: with D the registry's normalization
    denominator, each plugin's weight becomes its normalized weight times
    D / (D + risk_weight) and the risk metric gets risk_weight / (D + risk_weight).
    Weights therefore sum to at most 1 and the overall score stays within [0, 100].
    """
    plugin_total = aggregated["total_weight"]
    total = plugin_total + risk_weight
    plugin_scale = plugin_total / total if total > 0 else 0.0

    metric_scores = []
    for result in aggregated["results"]:
        weight = result["weight"] * plugin_scale
        metric_scores.append(
            {
                "name": result["plugin_name"],
                "score": result["output"]["score"],
                "weight": weight,
                "weighted_score": result["output"]["score"] * weight,
                "status": result["output"]["status"],
                "details": result["output"]["details"],
            }
        )

    risk_metric_score = 100 - reidentification_risk["risk_score"]
    normalized_risk_weight = risk_weight / total if total > 0 else 0.0
    metric_scores.append(
        {
            "name": REIDENTIFICATION_RISK_METRIC_NAME,
            "score": risk_metric_score,
            "weight": normalized_risk_weight,
            "weighted_score": risk_metric_score * normalized_risk_weight,
            "status": metric_status(risk_metric_score),
            "details": (
                f"{reidentification_risk['risk_level']} risk "
                f"({reidentification_risk['reidentification_probability'] * 100:.2f}% probability)"
            ),
        }
    )
    return metric_scores


def calculate_overall_score(metric_scores: list[dict[str, Any]]) -> int:
    return round_half_up(sum(metric["weighted_score"] for metric in metric_scores))


def generate_recommendations(
    classification: Classification,
    k_anonymity: dict[str, Any],
    l_diversity: dict[str, Any],
    t_closeness: dict[str, Any],
    technique_detection: dict[str, Any],
) -> list[dict[str, Any]]:
    """
    Generate recommendations from all metrics, most urgent first.

    Parameters
    ----------
    classification : Classification
        Attribute classification.
    k_anonymity, l_diversity, t_closeness, technique_detection : Dict[str, Any]
        Metric results (with per-class details).

    Returns
    -------
    List[Dict[str, Any]]
        Recommendations (id, priority, category, title, description,
        expected_impact, affected_attributes, action), sorted by priority
        (critical first) and then by expected impact, descending.
    """
    recommendations = []

    def add(**recommendation: Any) -> None:
        recommendations.append({"id": f"rec-{len(recommendations) + 1}", **recommendation})

    protected = {
        attr for technique in technique_detection["detected_techniques"] for attr in technique["affected_attributes"]
    }
    unprotected = [name for name in classification.names_of_type(DIRECT_IDENTIFIER) if name not in protected]
    if len(unprotected) > 0:
        add(
            priority="critical",
            category="general",
            title="Remove or Protect Direct Identifiers",
            description=(
                f"Direct identifiers ({', '.join(unprotected)}) can directly identify individuals "
                "and should be removed, hashed, or pseudonymized."
            ),
            expected_impact=25,
            affected_attributes=unprotected,
            action="Apply pseudonymization or cryptographic hashing to these attributes.",
        )

    if not k_anonymity["satisfies_k_anonymity"]:
        violation_details = get_k_anonymity_violation_details(k_anonymity)
        add(
            priority="high",
            category="k-anonymity",
            title="Improve K-Anonymity",
            description=(
                f"Dataset achieves k={k_anonymity['k_value']} but requires "
                f"k={k_anonymity['k_threshold']}. {violation_details['total_violating_records']} "
                "records are in violating equivalence classes."
            ),
            expected_impact=20,
            affected_attributes=list(k_anonymity["quasi_identifiers"]),
            action="Generalize quasi-identifier values or suppress outlier records.",
        )

    if not l_diversity["satisfies_l_diversity"] and len(l_diversity["sensitive_attributes"]) > 0:
        vulnerabilities = get_l_diversity_insights(l_diversity)["vulnerabilities"]
        vulnerability = (
            vulnerabilities[0]
            if len(vulnerabilities) > 0
            else "Some equivalence classes lack sensitive value diversity."
        )
        add(
            priority="high",
            category="l-diversity",
            title="Improve L-Diversity",
            description=(
                f"Dataset achieves l={l_diversity['l_value']} diversity but requires "
                f"l={l_diversity['l_threshold']}. {vulnerability}"
            ),
            expected_impact=15,
            affected_attributes=list(l_diversity["sensitive_attributes"]),
            action="Apply anatomy or bucketization to sensitive attributes.",
        )

    if not t_closeness["satisfies_t_closeness"] and t_closeness["sensitive_attribute"]:
        add(
            priority="medium",
            category="t-closeness",
            title="Address Distributional Skew",
            description=(
                f"Maximum distributional distance ({t_closeness['max_distance']:.3f}) exceeds "
                f"threshold ({t_closeness['t_threshold']}). This could enable inference attacks."
            ),
            expected_impact=10,
            affected_attributes=[t_closeness["sensitive_attribute"]],
            action="Apply data swapping or noise addition to reduce skew in equivalence classes.",
        )

    for technique_recommendation in technique_detection["recommendations"]:
        priority = technique_recommendation["priority"]
        technique_name = format_technique_name(technique_recommendation["technique"])
        add(
            priority="high" if priority == "critical" else priority,
            category="technique",
            title=f"Apply {technique_name}",
            description=technique_recommendation["reason"],
            expected_impact=TECHNIQUE_RECOMMENDATION_IMPACT.get(priority, DEFAULT_TECHNIQUE_RECOMMENDATION_IMPACT),
            affected_attributes=list(technique_recommendation["target_attributes"]),
            action=f"Apply {technique_name} to: {', '.join(technique_recommendation['target_attributes'])}",
        )

    return sorted(recommendations, key=lambda rec: (PRIORITY_ORDER[rec["priority"]], -rec["expected_impact"]))


def _summarize_details(report_key: str, result: dict[str, Any]) -> dict[str, Any]:
    """
    Drop the per equivalence class lists of a metric result.
    """
    summary = {key: value for key, value in result.items() if key != "class_results"}
    if report_key == "k_anonymity":
        summary["violating_classes"] = [ec["id"] for ec in result["violating_classes"]]
    return summary


def calculate_privacy_index(
    logger: logging.Logger,
    dataset: Dataset,
    classification: Classification,
    config: Optional[dict[str, Any]] = None,
    registry: Optional[PluginRegistry] = None,
    executor: Optional[Executor] = None,
    cancellation: Optional[CancellationToken] = None,
) -> dict[str, Any]:
    """
    Calculate the privacy index report of a dataset.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance for logging.
    dataset : Dataset
        Input dataset; not modified.
    classification : Classification
        Attribute classification of the dataset.
    config : Optional[Dict[str, Any]], default=None
        Partial run configuration, merged onto default_privacy_config().
    registry : Optional[PluginRegistry], default=None
        Registry of the plugins to run. If None, a fresh registry with the
        built-in plugins is used and all configured metric weights apply. If
        provided, only the metric weights explicitly present in config are
        applied to it.
    executor : Optional[Executor], default=None
        If not None, plugins run concurrently on this executor.
    cancellation : Optional[CancellationToken], default=None
        Checked between plugin executions and while grouping rows.

    Returns
    -------
    Dict[str, Any]
        overall_score, risk_level, grade, metric_scores, k_anonymity,
        l_diversity, t_closeness, technique_detection, reidentification_risk,
        recommendations, skipped_plugins, timestamp and metadata.

    Raises
    ------
    ValueError
        If the dataset has no headers or rows, the classification is missing or
        the configuration is invalid. Nothing is computed in that case.
    AnalysisCancelledError
        If the run is cancelled or times out.
    """
    start = time.perf_counter()
    validate_analysis_input(dataset, classification)
    merged_config = merge_privacy_config(config)
    is_valid, failure_details = check_privacy_config(merged_config)
    if not is_valid:
        raise ValueError(f"Invalid privacy config: {'; '.join(message for _, message in failure_details)}")

    metric_weights = merged_config["metric_weights"]
    if registry is None:
        registry = PluginRegistry(logger)
        register_built_in_plugins(registry)
        explicit_weight_keys = set(metric_weights)
    else:
        explicit_weight_keys = set(((config or {}).get("metric_weights") or {}).keys())
    registry.set_weight_configuration(
        {
            plugin_id: metric_weights[key]
            for key, plugin_id in METRIC_WEIGHT_KEY_TO_PLUGIN_ID.items()
            if key in explicit_weight_keys and plugin_id in registry
        }
    )

    logger.info(
        "Calculating privacy index for %d records, %d attributes",
        dataset.record_count,
        dataset.attribute_count,
    )
    plugin_input = PluginInput(dataset, classification, merged_config, cancellation)
    aggregated = registry.execute_all(plugin_input, executor=executor, cancellation=cancellation)

    executed_outputs = {result["plugin_id"]: result["output"] for result in aggregated["results"]}
    details = {}
    for report_key in REPORT_DETAIL_PLUGINS:
        check_cancelled(cancellation, f"report details ({report_key})")
        details[report_key] = _detail_output(logger, registry, report_key, executed_outputs, plugin_input)["result"]

    reidentification_risk = assess_reidentification_risk(
        logger,
        dataset,
        classification,
        details["k_anonymity"],
        details["technique_detection"],
    )
    metric_scores = calculate_metric_scores(
        aggregated,
        reidentification_risk,
        metric_weights.get(REIDENTIFICATION_RISK_WEIGHT_KEY, 0.0),
    )
    overall_score = calculate_overall_score(metric_scores)
    recommendations = generate_recommendations(
        classification,
        details["k_anonymity"],
        details["l_diversity"],
        details["t_closeness"],
        details["technique_detection"],
    )
    if not merged_config.get("include_detailed_analysis", True):
        details = {report_key: _summarize_details(report_key, result) for report_key, result in details.items()}

    analysis_duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "Privacy index %d (grade %s, %s risk) in %.1f ms, %d plugin(s) skipped",
        overall_score,
        grade_for_score(overall_score),
        risk_level_for_score(overall_score),
        analysis_duration_ms,
        len(aggregated["skipped_plugins"]),
    )
    return {
        "overall_score": overall_score,
        "risk_level": risk_level_for_score(overall_score),
        "grade": grade_for_score(overall_score),
        "metric_scores": metric_scores,
        "k_anonymity": details["k_anonymity"],
        "l_diversity": details["l_diversity"],
        "t_closeness": details["t_closeness"],
        "technique_detection": details["technique_detection"],
        "reidentification_risk": reidentification_risk,
        "recommendations": recommendations,
        "skipped_plugins": aggregated["skipped_plugins"],
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "metadata": {
            "record_count": dataset.record_count,
            "attribute_count": dataset.attribute_count,
            "classification_summary": {
                "direct_identifiers": classification.summary["direct_identifiers"],
                "quasi_identifiers": classification.summary["quasi_identifiers"],
                "sensitive_attributes": classification.summary["sensitive_attributes"],
                "non_sensitive_attributes": classification.summary["non_sensitive_attributes"],
            },
            "analysis_duration_ms": analysis_duration_ms,
            "config": merged_config,
        },
    }


def _json_default(value: Any) -> Any:
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (tuple, set, frozenset)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def privacy_index_report_to_json(report: dict[str, Any], **kwargs: Any) -> str:
    """
    Serialize a privacy index report to JSON.

    Parameters
    ----------
    report : Dict[str, Any]
        Output of calculate_privacy_index.
    **kwargs : Any
        Passed to json.dumps (e.g. indent).

    Returns
    -------
    str
        JSON document.
    """
    return json.dumps(report, default=_json_default, **kwargs)
