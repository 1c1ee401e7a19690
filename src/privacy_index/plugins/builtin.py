"""
The built-in privacy metric plugins: k-anonymity, l-diversity, t-closeness and
technique detection.
"""

import logging
import math
import numbers
from typing import Any, Optional, Union

from privacy_index.config import L_DIVERSITY_TYPES
from privacy_index.disclosure_risk_metrics.k_anonymity import (
    calculate_k_anonymity,
    calculate_k_anonymity_score,
    generate_k_anonymity_insights,
)
from privacy_index.disclosure_risk_metrics.l_diversity import (
    calculate_l_diversity,
    calculate_l_diversity_score,
    generate_l_diversity_insights,
)
from privacy_index.disclosure_risk_metrics.t_closeness import (
    calculate_t_closeness,
    calculate_t_closeness_score,
    generate_t_closeness_insights,
)
from privacy_index.plugins.base import PluginInput, PluginMetadata, PrivacyPlugin, make_plugin_output
from privacy_index.techniques.detection import detect_privacy_techniques, generate_technique_insights
from privacy_index.techniques.detectors import default_detection_thresholds

AUTHOR = "Privacy Index Calculator"


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


class KAnonymityPlugin(PrivacyPlugin):
    """
    Every record must be indistinguishable from at least k - 1 others.
    """

    metadata = PluginMetadata(
        id="k-anonymity",
        name="K-Anonymity",
        description=(
            "Ensures each record is indistinguishable from at least k-1 others "
            "based on quasi-identifiers"
        ),
        version="1.0.0",
        category="privacy-model",
        default_weight=0.25,
        required=True,
        dependencies=(),
        author=AUTHOR,
    )

    def calculate(
        self,
        logger: logging.Logger,
        plugin_input: PluginInput,
        plugin_config: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        config = self.merged_config(plugin_config)
        k_threshold = plugin_input.config.get("k_threshold", config["k_threshold"])
        result = calculate_k_anonymity(
            logger,
            plugin_input.dataset,
            plugin_input.classification,
            k_threshold,
            cancellation=plugin_input.cancellation,
            equivalence_classes=plugin_input.equivalence_classes(logger),
        )
        return make_plugin_output(
            result,
            calculate_k_anonymity_score(result),
            f"k={result['k_value']} (threshold: {k_threshold}), "
            f"{result['compliance_rate']:.1f}% compliant",
            generate_k_anonymity_insights(result),
        )

    def get_default_config(self) -> dict[str, Any]:
        return {"k_threshold": 5}

    def validate_config(self, config: dict[str, Any]) -> Union[bool, str]:
        if not _is_number(config.get("k_threshold")) or config["k_threshold"] < 1:
            return "k_threshold must be a positive number"
        return True


class LDiversityPlugin(PrivacyPlugin):
    """
    Sensitive values must be diverse within every equivalence class.
    """

    metadata = PluginMetadata(
        id="l-diversity",
        name="L-Diversity",
        description="Ensures diversity in sensitive attributes within equivalence classes",
        version="1.0.0",
        category="privacy-model",
        default_weight=0.20,
        required=True,
        dependencies=(),
        author=AUTHOR,
    )

    def calculate(
        self,
        logger: logging.Logger,
        plugin_input: PluginInput,
        plugin_config: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        config = self.merged_config(plugin_config)
        l_threshold = plugin_input.config.get("l_threshold", config["l_threshold"])
        diversity_type = plugin_input.config.get("l_diversity_type", config["diversity_type"])
        result = calculate_l_diversity(
            logger,
            plugin_input.dataset,
            plugin_input.classification,
            l_threshold,
            diversity_type,
            cancellation=plugin_input.cancellation,
            equivalence_classes=plugin_input.equivalence_classes(logger),
        )
        return make_plugin_output(
            result,
            calculate_l_diversity_score(result),
            f"l={result['l_value']} (threshold: {l_threshold}), "
            f"{result['compliance_rate']:.1f}% compliant",
            generate_l_diversity_insights(result),
        )

    def get_default_config(self) -> dict[str, Any]:
        return {"l_threshold": 2, "diversity_type": "distinct"}

    def validate_config(self, config: dict[str, Any]) -> Union[bool, str]:
        if not _is_number(config.get("l_threshold")) or config["l_threshold"] < 1:
            return "l_threshold must be a positive number"
        if config.get("diversity_type") not in L_DIVERSITY_TYPES:
            return f"diversity_type must be one of: {', '.join(L_DIVERSITY_TYPES)}"
        return True


class TClosenessPlugin(PrivacyPlugin):
    """
    Sensitive value distributions of equivalence classes must stay close to the global one.
    """

    metadata = PluginMetadata(
        id="t-closeness",
        name="T-Closeness",
        description=(
            "Ensures distribution similarity between equivalence classes and the overall dataset"
        ),
        version="1.0.0",
        category="privacy-model",
        default_weight=0.15,
        required=True,
        # t-closeness refines l-diversity
        dependencies=("l-diversity",),
        author=AUTHOR,
    )

    def calculate(
        self,
        logger: logging.Logger,
        plugin_input: PluginInput,
        plugin_config: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        config = self.merged_config(plugin_config)
        t_threshold = plugin_input.config.get("t_threshold", config["t_threshold"])
        result = calculate_t_closeness(
            logger,
            plugin_input.dataset,
            plugin_input.classification,
            t_threshold,
            cancellation=plugin_input.cancellation,
            equivalence_classes=plugin_input.equivalence_classes(logger),
        )
        return make_plugin_output(
            result,
            calculate_t_closeness_score(result),
            f"max distance: {result['max_distance']:.3f} (threshold: {t_threshold})",
            generate_t_closeness_insights(result),
        )

    def get_default_config(self) -> dict[str, Any]:
        return {"t_threshold": 0.15}

    def validate_config(self, config: dict[str, Any]) -> Union[bool, str]:
        t_threshold = config.get("t_threshold")
        if not _is_number(t_threshold) or not 0 < t_threshold <= 1:
            return "t_threshold must be a number between 0 and 1"
        return True


class TechniqueDetectionPlugin(PrivacyPlugin):
    """
    Privacy-preserving techniques already applied to the dataset.
    """

    metadata = PluginMetadata(
        id="technique-detection",
        name="Privacy Techniques",
        description="Detects privacy-preserving techniques applied to the dataset",
        version="1.0.0",
        category="technique",
        default_weight=0.20,
        required=True,
        dependencies=(),
        author=AUTHOR,
    )

    def calculate(
        self,
        logger: logging.Logger,
        plugin_input: PluginInput,
        plugin_config: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        config = self.merged_config(plugin_config)
        result = detect_privacy_techniques(
            logger,
            plugin_input.dataset,
            plugin_input.classification,
            min_confidence=config["min_confidence"],
            generate_recommendations=config["generate_recommendations"],
            thresholds=config["thresholds"],
            cancellation=plugin_input.cancellation,
        )
        return make_plugin_output(
            result,
            result["technique_score"],
            f"{len(result['detected_techniques'])} technique(s) detected, "
            f"{result['technique_coverage'] * 100:.0f}% coverage",
            generate_technique_insights(result),
        )

    def can_calculate(self, plugin_input: PluginInput) -> bool:
        return plugin_input.dataset.record_count > 0 and len(plugin_input.classification.attributes) > 0

    def get_default_config(self) -> dict[str, Any]:
        return {
            "min_confidence": 0.3,
            "generate_recommendations": True,
            "thresholds": default_detection_thresholds(),
        }

    def validate_config(self, config: dict[str, Any]) -> Union[bool, str]:
        min_confidence = config.get("min_confidence")
        if not _is_number(min_confidence) or not 0 <= min_confidence <= 1:
            return "min_confidence must be a number between 0 and 1"
        thresholds = config.get("thresholds", {})
        if not isinstance(thresholds, dict):
            return "thresholds must be a mapping"
        known = default_detection_thresholds()
        for key, value in thresholds.items():
            if key not in known:
                return f"Unknown detection threshold: {key}"
            if not _is_number(value) or value < 0:
                return f"Detection threshold {key} must be a non-negative number"
        return True


def get_built_in_plugins() -> list[PrivacyPlugin]:
    return [KAnonymityPlugin(), LDiversityPlugin(), TClosenessPlugin(), TechniqueDetectionPlugin()]


def register_built_in_plugins(registry: Any) -> None:
    """
    Register all built-in plugins with their default weight and configuration.

    Parameters
    ----------
    registry : PluginRegistry
        Registry to register the plugins with.
    """
    for plugin in get_built_in_plugins():
        registry.register(plugin)
