"""
Tests for the built-in privacy metric plugins
"""

import logging

import numpy as np
import pytest

from privacy_index.config import default_privacy_config
from privacy_index.constants import EPSILON
from privacy_index.dataset import Classification
from privacy_index.plugins import (
    KAnonymityPlugin,
    LDiversityPlugin,
    PluginInput,
    PluginRegistry,
    TClosenessPlugin,
    TechniqueDetectionPlugin,
    get_built_in_plugins,
    register_built_in_plugins,
)
from privacy_index.utils import metric_status
from tests.shared import make_medical_dataset, make_scenario_a

_LOGGER = logging.getLogger(__name__)


class TestBuiltInPlugins:
    """
    Tests for the metadata and outputs of the built-in plugins
    """

    # pylint: disable=no-self-use

    def test_metadata(self):
        """Ids, categories and default weights"""
        plugins = get_built_in_plugins()
        assert [p.id for p in plugins] == ["k-anonymity", "l-diversity", "t-closeness", "technique-detection"]
        assert [p.metadata.category for p in plugins] == ["privacy-model"] * 3 + ["technique"]
        np.testing.assert_allclose(sum(p.metadata.default_weight for p in plugins), 0.8, atol=EPSILON)
        assert TClosenessPlugin.metadata.dependencies == ("l-diversity",)
        assert all(p.metadata.required for p in plugins)

    @pytest.mark.parametrize("plugin", get_built_in_plugins(), ids=lambda p: p.id)
    def test_output(self, plugin):
        """Outputs carry result, an integer score in range, the matching status, details and insights"""
        dataset, classification = make_medical_dataset()
        output = plugin.calculate(_LOGGER, PluginInput(dataset, classification, default_privacy_config()))
        assert set(output) == {"result", "score", "status", "details", "insights"}
        assert isinstance(output["score"], int)
        assert 0 <= output["score"] <= 100
        assert output["status"] == metric_status(output["score"])
        assert isinstance(output["details"], str) and output["details"]
        assert all(isinstance(insight, str) for insight in output["insights"])

    @pytest.mark.parametrize("plugin", get_built_in_plugins(), ids=lambda p: p.id)
    def test_default_config_is_valid(self, plugin):
        """Default configurations pass validation"""
        assert plugin.validate_config(plugin.get_default_config()) is True

    def test_run_config_takes_precedence(self):
        """Thresholds of the run configuration override the plugin configuration"""
        dataset, classification = make_scenario_a()
        plugin = KAnonymityPlugin()
        with_run_config = plugin.calculate(
            _LOGGER, PluginInput(dataset, classification, {"k_threshold": 3}), {"k_threshold": 1}
        )
        without_run_config = plugin.calculate(_LOGGER, PluginInput(dataset, classification), {"k_threshold": 1})
        assert with_run_config["result"]["k_threshold"] == 3
        assert not with_run_config["result"]["satisfies_k_anonymity"]
        assert without_run_config["result"]["k_threshold"] == 1
        assert without_run_config["result"]["satisfies_k_anonymity"]
        assert without_run_config["details"] == "k=1 (threshold: 1), 100.0% compliant"

    def test_l_diversity_type(self):
        """The run configuration selects the l-diversity criterion"""
        dataset, classification = make_medical_dataset()
        plugin = LDiversityPlugin()
        output = plugin.calculate(_LOGGER, PluginInput(dataset, classification, {"l_diversity_type": "entropy"}))
        assert output["result"]["diversity_type"] == "entropy"
        output = plugin.calculate(_LOGGER, PluginInput(dataset, classification), {"diversity_type": "recursive"})
        assert output["result"]["diversity_type"] == "recursive"

    def test_technique_detection_config(self):
        """Technique detection takes its confidence cut-off from the plugin configuration"""
        dataset, classification = make_medical_dataset()
        plugin = TechniqueDetectionPlugin()
        lenient = plugin.calculate(_LOGGER, PluginInput(dataset, classification), {"min_confidence": 0.0})
        strict = plugin.calculate(_LOGGER, PluginInput(dataset, classification), {"min_confidence": 0.99})
        assert len(strict["result"]["detected_techniques"]) == 0
        assert len(lenient["result"]["detected_techniques"]) > 0
        assert strict["score"] == 20

    def test_technique_detection_needs_classification(self):
        """Technique detection does not apply without classified attributes"""
        dataset, _ = make_scenario_a()
        plugin = TechniqueDetectionPlugin()
        assert not plugin.can_calculate(PluginInput(dataset, Classification([])))
        assert KAnonymityPlugin().can_calculate(PluginInput(dataset, Classification([])))

    def test_register_built_in_plugins(self):
        """All built-in plugins are registered with their default weights"""
        registry = PluginRegistry(_LOGGER)
        register_built_in_plugins(registry)
        assert registry.get_weight_configuration() == {
            "k-anonymity": 0.25,
            "l-diversity": 0.20,
            "t-closeness": 0.15,
            "technique-detection": 0.20,
        }


class TestBuiltInPluginConfigValidation:
    """
    Tests for validate_config of the built-in plugins
    """

    # pylint: disable=no-self-use

    @pytest.mark.parametrize(
        "plugin,config,message",
        [
            (KAnonymityPlugin(), {"k_threshold": 0}, "k_threshold"),
            (KAnonymityPlugin(), {"k_threshold": "5"}, "k_threshold"),
            (LDiversityPlugin(), {"l_threshold": 2, "diversity_type": "maximal"}, "diversity_type"),
            (LDiversityPlugin(), {"l_threshold": -1, "diversity_type": "distinct"}, "l_threshold"),
            (TClosenessPlugin(), {"t_threshold": 0}, "t_threshold"),
            (TClosenessPlugin(), {"t_threshold": 1.5}, "t_threshold"),
            (TechniqueDetectionPlugin(), {"min_confidence": 2}, "min_confidence"),
            (TechniqueDetectionPlugin(), {"min_confidence": 0.3, "thresholds": {"bogus": 1}}, "Unknown"),
            (TechniqueDetectionPlugin(), {"min_confidence": 0.3, "thresholds": {"hash_min_matches": -1}}, "hash_min_matches"),
        ],
    )
    def test_invalid(self, plugin, config, message):
        """Invalid configurations yield a message naming the problem"""
        validation = plugin.validate_config(config)
        assert validation is not True
        assert message in validation

    def test_registry_rejects_invalid(self):
        """The registry refuses invalid built-in configurations"""
        registry = PluginRegistry(_LOGGER)
        register_built_in_plugins(registry)
        with pytest.raises(ValueError):
            registry.set_plugin_config("t-closeness", {"t_threshold": 2})
        assert registry.get_plugin("t-closeness").config == {"t_threshold": 0.15}
