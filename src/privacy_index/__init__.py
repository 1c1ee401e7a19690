"""
Privacy Index - Privacy risk scoring for classified tabular datasets.

This package computes k-anonymity, l-diversity and t-closeness over equivalence
classes of quasi-identifier values, detects privacy-preserving techniques
already applied to the data, and aggregates everything into a single 0-100
privacy index with a grade, a risk level and prioritized recommendations.
"""

from privacy_index._version import __version__
from privacy_index.cancellation import AnalysisCancelledError, CancellationToken
from privacy_index.config import check_privacy_config, default_privacy_config, merge_privacy_config
from privacy_index.dataset import AttributeClassification, Classification, Dataset
from privacy_index.plugins import PluginInput, PluginRegistry, PrivacyPlugin, register_built_in_plugins
from privacy_index.privacy_index import calculate_privacy_index, privacy_index_report_to_json
from privacy_index.risk import assess_reidentification_risk

__all__ = [
    "__version__",
    "calculate_privacy_index",
    "privacy_index_report_to_json",
    "assess_reidentification_risk",
    "Dataset",
    "AttributeClassification",
    "Classification",
    "default_privacy_config",
    "merge_privacy_config",
    "check_privacy_config",
    "PluginInput",
    "PluginRegistry",
    "PrivacyPlugin",
    "register_built_in_plugins",
    "CancellationToken",
    "AnalysisCancelledError",
]
