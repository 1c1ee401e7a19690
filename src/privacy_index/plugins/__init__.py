"""
Plugin system for privacy metrics.

Each privacy metric is a plugin conforming to PrivacyPlugin. Plugins are
registered with an explicitly constructed PluginRegistry, which owns their
weights, enabled flags and configurations.
"""

from .base import PluginInput, PluginMetadata, PrivacyPlugin, make_plugin_output
from .builtin import (
    KAnonymityPlugin,
    LDiversityPlugin,
    TClosenessPlugin,
    TechniqueDetectionPlugin,
    get_built_in_plugins,
    register_built_in_plugins,
)
from .registry import PluginConfigurationError, PluginRegistry, RegisteredPlugin

__all__ = [
    "PluginInput",
    "PluginMetadata",
    "PrivacyPlugin",
    "make_plugin_output",
    "KAnonymityPlugin",
    "LDiversityPlugin",
    "TClosenessPlugin",
    "TechniqueDetectionPlugin",
    "get_built_in_plugins",
    "register_built_in_plugins",
    "PluginConfigurationError",
    "PluginRegistry",
    "RegisteredPlugin",
]
