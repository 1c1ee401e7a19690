"""
Detection of privacy-preserving techniques already applied to a dataset.

Runs every technique detector, keeps the evidence above a minimum confidence,
and scores the result from the privacy benefit and confidence of the detected
techniques plus the share of attributes they protect.
"""

import logging
from typing import Any, Optional

from privacy_index.cancellation import CancellationToken, check_cancelled
from privacy_index.constants import DIRECT_IDENTIFIER, QUASI_IDENTIFIER, SENSITIVE
from privacy_index.dataset import Classification, Dataset
from privacy_index.techniques.detectors import (
    TechniqueDetector,
    default_detection_thresholds,
    evidence_to_dict,
    get_technique_detectors,
    profile_columns,
)
from privacy_index.utils import round_half_up

BENEFIT_POINTS: dict[str, int] = {"high": 20, "medium": 12, "low": 5}

# Score when no technique is detected at all
NO_TECHNIQUE_BASELINE_SCORE: int = 20


def detect_privacy_techniques(
    logger: logging.Logger,
    dataset: Dataset,
    classification: Classification,
    min_confidence: float = 0.3,
    generate_recommendations: bool = True,
    thresholds: Optional[dict[str, float]] = None,
    detectors: Optional[list[TechniqueDetector]] = None,
    cancellation: Optional[CancellationToken] = None,
) -> dict[str, Any]:
    """
    Detect privacy-preserving techniques applied to a dataset.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance for logging.
    dataset : Dataset
        Input dataset.
    classification : Classification
        Attribute classification; only classified attributes are scanned.
    min_confidence : float, optional
        Evidence with a confidence at or below this value is discarded, and a
        technique without remaining evidence is not reported.
    generate_recommendations : bool, optional
        Whether to recommend techniques for unprotected attributes.
    thresholds : Optional[Dict[str, float]], default=None
        Overrides of the detector heuristics, see default_detection_thresholds.
    detectors : Optional[List[TechniqueDetector]], default=None
        Detectors to run; all of them if not provided.
    cancellation : Optional[CancellationToken], default=None
        Checked between detectors.

    Returns
    -------
    Dict[str, Any]
        detected_techniques, technique_coverage, protected_attribute_count,
        total_attributes, technique_score and recommendations.
    """
    merged_thresholds = default_detection_thresholds()
    if thresholds is not None:
        merged_thresholds.update(thresholds)
    if detectors is None:
        detectors = get_technique_detectors()

    columns = profile_columns(dataset, classification)
    detected_techniques = []
    protected_attributes: dict[str, None] = {}
    for detector in detectors:
        check_cancelled(cancellation, f"detecting {detector.technique}")
        evidence = [e for e in detector.detect(columns, merged_thresholds) if e.confidence > min_confidence]
        logger.debug("%s: %d evidence item(s) above %s", detector, len(evidence), min_confidence)
        if len(evidence) == 0:
            continue
        affected_attributes = list(dict.fromkeys(e.attribute for e in evidence))
        detected_techniques.append(
            {
                "technique": detector.technique,
                "affected_attributes": affected_attributes,
                "confidence": float(max(e.confidence for e in evidence)),
                "evidence": [evidence_to_dict(e) for e in evidence],
                "description": detector.description,
                "privacy_benefit": detector.privacy_benefit,
            }
        )
        protected_attributes.update(dict.fromkeys(affected_attributes))

    total_attributes = len(classification.attributes)
    technique_coverage = len(protected_attributes) / total_attributes if total_attributes > 0 else 0.0
    technique_score = calculate_technique_score(detected_techniques, technique_coverage)
    recommendations = (
        generate_technique_recommendations(classification, detected_techniques)
        if generate_recommendations
        else []
    )
    logger.debug(
        "Detected techniques %s covering %d of %d attributes, score %d",
        [t["technique"] for t in detected_techniques],
        len(protected_attributes),
        total_attributes,
        technique_score,
    )
    return {
        "detected_techniques": detected_techniques,
        "technique_coverage": float(technique_coverage),
        "protected_attribute_count": len(protected_attributes),
        "total_attributes": total_attributes,
        "technique_score": technique_score,
        "recommendations": recommendations,
    }


def calculate_technique_score(detected_techniques: list[dict[str, Any]], coverage: float) -> int:
    """
    Score detected techniques on a 0-100 scale.

    Parameters
    ----------
    detected_techniques : List[Dict[str, Any]]
        Detected techniques, each with privacy_benefit and confidence.
    coverage : float
        Share of attributes protected by any technique, in [0, 1].

    Returns
    -------
    int
        min(sum(benefit points * confidence), 60) + coverage * 40, capped at 100;
        a fixed baseline of 20 if nothing was detected.

    Examples
    --------
    >>> calculate_technique_score([], 0.0)
    20
    >>> calculate_technique_score([{"privacy_benefit": "high", "confidence": 0.9}], 0.5)
    38
    """
    if len(detected_techniques) == 0:
        return NO_TECHNIQUE_BASELINE_SCORE
    technique_points = sum(
        BENEFIT_POINTS[technique["privacy_benefit"]] * technique["confidence"]
        for technique in detected_techniques
    )
    technique_points = min(technique_points, 60.0)
    coverage_points = coverage * 40
    return round_half_up(min(technique_points + coverage_points, 100.0))


def generate_technique_recommendations(
    classification: Classification,
    detected_techniques: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """
    Recommend techniques for attributes that no detected technique protects.

    Unprotected direct identifiers get pseudonymization (critical) and hashing
    (high), unprotected quasi-identifiers generalization (high) and unprotected
    sensitive attributes bucketing (medium).
    """
    protected = {attr for technique in detected_techniques for attr in technique["affected_attributes"]}

    def unprotected(attribute_type: str) -> list[str]:
        return [name for name in classification.names_of_type(attribute_type) if name not in protected]

    recommendations = []
    direct_identifiers = unprotected(DIRECT_IDENTIFIER)
    if len(direct_identifiers) > 0:
        recommendations.append(
            {
                "technique": "pseudonymization",
                "target_attributes": direct_identifiers,
                "priority": "critical",
                "reason": "Direct identifiers should be pseudonymized or removed.",
            }
        )
        recommendations.append(
            {
                "technique": "hashing",
                "target_attributes": direct_identifiers,
                "priority": "high",
                "reason": "Consider hashing direct identifiers if linkage is needed.",
            }
        )

    quasi_identifiers = unprotected(QUASI_IDENTIFIER)
    if len(quasi_identifiers) > 0:
        recommendations.append(
            {
                "technique": "generalization",
                "target_attributes": quasi_identifiers,
                "priority": "high",
                "reason": "Quasi-identifiers should be generalized to achieve k-anonymity.",
            }
        )

    sensitive_attributes = unprotected(SENSITIVE)
    if len(sensitive_attributes) > 0:
        recommendations.append(
            {
                "technique": "bucketing",
                "target_attributes": sensitive_attributes,
                "priority": "medium",
                "reason": "Sensitive attributes could benefit from bucketing.",
            }
        )
    return recommendations


def generate_technique_insights(result: dict[str, Any]) -> list[str]:
    insights = []
    detected = result["detected_techniques"]
    if len(detected) == 0:
        insights.append("No privacy techniques detected in this dataset")
    else:
        insights.append(f"{len(detected)} privacy technique(s) detected")

    high_benefit = [t["technique"] for t in detected if t["privacy_benefit"] == "high"]
    if len(high_benefit) > 0:
        insights.append(f"{len(high_benefit)} high-benefit technique(s): {', '.join(high_benefit)}")

    coverage = result["technique_coverage"] * 100
    if coverage < 50:
        insights.append(f"Only {coverage:.0f}% of attributes have protection")
    else:
        insights.append(f"{coverage:.0f}% of attributes have protection")
    return insights
