"""
Heuristic detection of privacy-preserving techniques.

Functions
---------
detect_privacy_techniques : Dict[str, Any]
    Run all technique detectors and score the detected techniques.

calculate_technique_score : int
    Score detected techniques from their privacy benefit, confidence and coverage.

"""

from .detection import (
    calculate_technique_score,
    detect_privacy_techniques,
    generate_technique_insights,
    generate_technique_recommendations,
)
from .detectors import TechniqueDetector, TechniqueEvidence, default_detection_thresholds, get_technique_detectors

__all__ = [
    "calculate_technique_score",
    "detect_privacy_techniques",
    "generate_technique_insights",
    "generate_technique_recommendations",
    "TechniqueDetector",
    "TechniqueEvidence",
    "default_detection_thresholds",
    "get_technique_detectors",
]
