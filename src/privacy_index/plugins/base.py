"""
Contract shared by all privacy metric plugins.

A plugin is a stateless unit that computes one privacy metric from a
PluginInput. It exposes metadata, a calculate method returning a plugin output
dictionary (result, score, status, details, insights), an applicability check
and a default, validatable configuration. Mutable per-plugin state (weight,
enabled, config) lives in the PluginRegistry, never in the plugin.
"""

import logging
import numbers
import threading
from abc import ABCMeta, abstractmethod
from collections import namedtuple
from typing import Any, Optional, Union

from privacy_index.cancellation import CancellationToken
from privacy_index.constants import QUASI_IDENTIFIER
from privacy_index.dataset import Classification, Dataset
from privacy_index.equivalence_classes import EquivalenceClass, build_equivalence_classes
from privacy_index.utils import metric_status

PLUGIN_CATEGORIES: tuple[str, ...] = ("privacy-model", "technique", "risk", "custom")

PluginMetadata = namedtuple(
    "PluginMetadata",
    [
        "id",
        "name",
        "description",
        "version",
        "category",
        "default_weight",
        "required",
        "dependencies",
        "author",
    ],
    defaults=["1.0.0", "custom", 0.0, False, (), None],
)


class PluginInput:
    """
    Read-only input shared by all plugins of one analysis run.

    Parameters
    ----------
    dataset : Dataset
        Input dataset.
    classification : Classification
        Attribute classification of the dataset.
    config : Optional[Dict[str, Any]], default=None
        Run configuration. Thresholds set here take precedence over the plugin
        specific configuration.
    cancellation : Optional[CancellationToken], default=None
        Checked by plugins at safe points of long computations.

    Notes
    -----
    The equivalence classes over the quasi-identifiers are built on first use
    and shared by every plugin run with this input.
    """

    def __init__(
        self,
        dataset: Dataset,
        classification: Classification,
        config: Optional[dict[str, Any]] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        self.dataset = dataset
        self.classification = classification
        self.config: dict[str, Any] = {} if config is None else config
        self.cancellation = cancellation
        self._equivalence_classes: Optional[list[EquivalenceClass]] = None
        self._equivalence_classes_lock = threading.Lock()

    def equivalence_classes(self, logger: logging.Logger) -> list[EquivalenceClass]:
        """
        Equivalence classes over the quasi-identifiers present in the dataset.

        Built once per input; concurrent callers wait for the first build.
        """
        with self._equivalence_classes_lock:
            if self._equivalence_classes is None:
                qids = [
                    qid
                    for qid in self.classification.names_of_type(QUASI_IDENTIFIER)
                    if qid in self.dataset.headers
                ]
                self._equivalence_classes = build_equivalence_classes(
                    logger, self.dataset, qids, cancellation=self.cancellation
                )
            return self._equivalence_classes

    def __repr__(self) -> str:
        return f"PluginInput({self.dataset}, {len(self.classification)} classified attributes)"


def make_plugin_output(
    result: dict[str, Any],
    score: int,
    details: str,
    insights: Optional[list[str]] = None,
) -> dict[str, Any]:
    """
    Assemble a plugin output, deriving the status from the score.
    """
    return {
        "result": result,
        "score": score,
        "status": metric_status(score),
        "details": details,
        "insights": [] if insights is None else insights,
    }


def check_plugin_output(plugin_id: str, output: Any) -> None:
    """
    Check the shape of a plugin output.

    Raises
    ------
    ValueError
        If the output is not a dictionary with a numeric score in [0, 100].
    """
    if not isinstance(output, dict) or "score" not in output:
        raise ValueError(f"Plugin {plugin_id} returned an output without a score")
    score = output["score"]
    if not isinstance(score, numbers.Real) or isinstance(score, bool) or not 0 <= score <= 100:
        raise ValueError(f"Plugin {plugin_id} returned a score ({score}) outside [0, 100]")


class PrivacyPlugin(metaclass=ABCMeta):
    """
    Base class of privacy metric plugins.

    Subclasses set metadata and implement calculate; the defaults of the other
    methods accept any dataset with rows and an empty configuration.
    """

    metadata: PluginMetadata

    @abstractmethod
    def calculate(
        self,
        logger: logging.Logger,
        plugin_input: PluginInput,
        plugin_config: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Calculate the privacy metric.

        Parameters
        ----------
        logger : logging.Logger
            Logger instance for logging.
        plugin_input : PluginInput
            Dataset, classification and run configuration.
        plugin_config : Optional[Dict[str, Any]], default=None
            Plugin specific configuration, merged onto get_default_config().

        Returns
        -------
        Dict[str, Any]
            result, score (int in [0, 100]), status, details and insights.
        """

    def can_calculate(self, plugin_input: PluginInput) -> bool:
        return plugin_input.dataset.record_count > 0

    def get_default_config(self) -> dict[str, Any]:
        return {}

    def validate_config(self, config: dict[str, Any]) -> Union[bool, str]:  # pylint: disable=unused-argument
        """
        Validate a plugin specific configuration.

        Returns
        -------
        Union[bool, str]
            True if valid, otherwise an error message.
        """
        return True

    def merged_config(self, plugin_config: Optional[dict[str, Any]]) -> dict[str, Any]:
        config = self.get_default_config()
        if plugin_config is not None:
            config.update(plugin_config)
        return config

    @property
    def id(self) -> str:
        return self.metadata.id

    def __repr__(self) -> str:
        return f"{self.metadata.name} ({self.metadata.id} v{self.metadata.version})"
