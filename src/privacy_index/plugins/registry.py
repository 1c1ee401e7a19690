"""
Registry of privacy metric plugins.

The registry owns the mutable state of each plugin (weight, enabled, config),
resolves the execution order from the plugins' declared dependencies, runs the
plugins uniformly and combines their scores into a normalized weighted score.

The registry is not safe for concurrent mutation: registration, setters and
execution against one registry must be serialized by the caller. Plugins
themselves may run concurrently on an executor during execute_all.
"""

import logging
import math
import numbers
import time
from concurrent.futures import Executor
from typing import Any, Optional

from privacy_index.cancellation import AnalysisCancelledError, CancellationToken, check_cancelled
from privacy_index.futures import make_future
from privacy_index.plugins.base import PLUGIN_CATEGORIES, PluginInput, PrivacyPlugin, check_plugin_output
from privacy_index.utils import round_half_up

SKIP_REASON_DISABLED = "Plugin disabled"
SKIP_REASON_CANNOT_CALCULATE = "Cannot calculate with provided input"
SKIP_REASON_EXECUTION_ERROR = "Execution error: {message}"


class PluginConfigurationError(ValueError):
    """
    Raised when a plugin weight or configuration is rejected.
    """


class RegisteredPlugin:
    """
    A plugin together with its registration state.

    Parameters
    ----------
    plugin : PrivacyPlugin
        The plugin.
    weight : float
        Weight of the plugin in the overall score, before normalization.
    enabled : bool
        Whether the plugin runs in execute_all.
    config : Dict[str, Any]
        Plugin specific configuration.
    """

    def __init__(self, plugin: PrivacyPlugin, weight: float, enabled: bool, config: dict[str, Any]) -> None:
        self.plugin = plugin
        self.weight = weight
        self.enabled = enabled
        self.config = config

    def __repr__(self) -> str:
        return (
            f"{self.plugin.metadata.id} (weight = {self.weight:.3f}, "
            f"{'enabled' if self.enabled else 'disabled'})"
        )


def _check_weight(plugin_id: str, weight: Any) -> float:
    """
    Validate a weight and clamp it to [0, 1].

    Raises
    ------
    PluginConfigurationError
        If the weight is not a finite non-negative number.
    """
    if not isinstance(weight, numbers.Real) or isinstance(weight, bool) or not math.isfinite(weight):
        raise PluginConfigurationError(f"Weight ({weight}) for plugin {plugin_id} must be a finite number")
    if weight < 0:
        raise PluginConfigurationError(f"Weight ({weight}) for plugin {plugin_id} must not be negative")
    return float(min(weight, 1.0))


def _timed_calculate(
    logger: logging.Logger,
    plugin: PrivacyPlugin,
    plugin_input: PluginInput,
    plugin_config: dict[str, Any],
) -> tuple[dict[str, Any], float]:
    """
    Run one plugin and measure its execution time in milliseconds.
    """
    start = time.perf_counter()
    output = plugin.calculate(logger, plugin_input, plugin_config)
    check_plugin_output(plugin.metadata.id, output)
    return output, (time.perf_counter() - start) * 1000


class PluginRegistry:
    """
    Registry of privacy metric plugins, constructed and owned by the caller.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance for logging.
    renormalize_after_failures : bool, optional
        If False (default) a plugin failing during execute_all keeps its weight
        in the normalization denominator, which lowers the achievable overall
        score. If True weights are renormalized over the plugins that succeeded.
    """

    def __init__(self, logger: logging.Logger, renormalize_after_failures: bool = False) -> None:
        self.logger = logger
        self.renormalize_after_failures = renormalize_after_failures
        self._plugins: dict[str, RegisteredPlugin] = {}
        self._execution_order: list[str] = []

    def register(
        self,
        plugin: PrivacyPlugin,
        weight: Optional[float] = None,
        enabled: Optional[bool] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Register a plugin, overwriting any plugin registered with the same id.

        Parameters
        ----------
        plugin : PrivacyPlugin
            Plugin to register.
        weight : Optional[float], default=None
            Weight; the plugin's default weight if not provided.
        enabled : Optional[bool], default=None
            Whether the plugin is enabled; True if not provided.
        config : Optional[Dict[str, Any]], default=None
            Plugin configuration; the plugin's default configuration if not provided.

        Raises
        ------
        PluginConfigurationError
            If the weight or configuration is invalid. Nothing is registered.
        """
        plugin_id = plugin.metadata.id
        checked_weight = _check_weight(plugin_id, plugin.metadata.default_weight if weight is None else weight)
        checked_config = plugin.get_default_config() if config is None else config
        validation = plugin.validate_config(checked_config)
        if validation is not True:
            self.logger.error("Invalid config for plugin %s: %s", plugin_id, validation)
            raise PluginConfigurationError(f"Invalid config for plugin {plugin_id}: {validation}")

        if plugin_id in self._plugins:
            self.logger.warning("Plugin %s is already registered, overwriting", plugin_id)
        self._plugins[plugin_id] = RegisteredPlugin(
            plugin,
            checked_weight,
            True if enabled is None else bool(enabled),
            checked_config,
        )
        self._update_execution_order()
        self.logger.debug("Registered %s", self._plugins[plugin_id])

    def unregister(self, plugin_id: str) -> bool:
        if plugin_id not in self._plugins:
            return False
        del self._plugins[plugin_id]
        self._update_execution_order()
        return True

    def get_plugin(self, plugin_id: str) -> Optional[RegisteredPlugin]:
        return self._plugins.get(plugin_id)

    def get_all_plugins(self) -> list[RegisteredPlugin]:
        return list(self._plugins.values())

    def get_plugins_by_category(self, category: str) -> list[RegisteredPlugin]:
        return [rp for rp in self._plugins.values() if rp.plugin.metadata.category == category]

    def set_plugin_enabled(self, plugin_id: str, enabled: bool) -> bool:
        registered = self._plugins.get(plugin_id)
        if registered is None:
            return False
        registered.enabled = bool(enabled)
        return True

    def set_plugin_weight(self, plugin_id: str, weight: float) -> bool:
        """
        Set the weight of a plugin, clamped to [0, 1].

        Returns
        -------
        bool
            False if no plugin is registered with this id.

        Raises
        ------
        PluginConfigurationError
            If the weight is not a finite non-negative number; the previous
            weight is kept.
        """
        registered = self._plugins.get(plugin_id)
        if registered is None:
            return False
        registered.weight = _check_weight(plugin_id, weight)
        return True

    def set_plugin_config(self, plugin_id: str, config: dict[str, Any]) -> bool:
        """
        Replace the configuration of a plugin after validating it.

        Returns
        -------
        bool
            False if no plugin is registered with this id.

        Raises
        ------
        PluginConfigurationError
            If the plugin rejects the configuration; the previous configuration
            is kept.
        """
        registered = self._plugins.get(plugin_id)
        if registered is None:
            return False
        validation = registered.plugin.validate_config(config)
        if validation is not True:
            self.logger.error("Invalid config for plugin %s: %s", plugin_id, validation)
            raise PluginConfigurationError(f"Invalid config for plugin {plugin_id}: {validation}")
        registered.config = config
        return True

    def get_weight_configuration(self) -> dict[str, float]:
        return {plugin_id: rp.weight for plugin_id, rp in self._plugins.items()}

    def set_weight_configuration(self, weights: dict[str, float]) -> None:
        """
        Set several weights at once; either all of them are applied or none.

        Ids that are not registered are ignored.

        Raises
        ------
        PluginConfigurationError
            If any weight is invalid.
        """
        checked = {
            plugin_id: _check_weight(plugin_id, weight)
            for plugin_id, weight in weights.items()
            if plugin_id in self._plugins
        }
        unknown = [plugin_id for plugin_id in weights if plugin_id not in self._plugins]
        if len(unknown) > 0:
            self.logger.warning("Ignoring weights of unregistered plugins: %s", unknown)
        for plugin_id, weight in checked.items():
            self._plugins[plugin_id].weight = weight

    @property
    def execution_order(self) -> list[str]:
        return list(self._execution_order)

    def _update_execution_order(self) -> None:
        """
        Depth first traversal placing each plugin after its registered dependencies.

        Each plugin is visited at most once, so a dependency cycle yields a
        partial order instead of an error.
        """
        visited: set[str] = set()
        order: list[str] = []

        def visit(plugin_id: str) -> None:
            if plugin_id in visited:
                return
            visited.add(plugin_id)
            for dependency_id in self._plugins[plugin_id].plugin.metadata.dependencies or ():
                if dependency_id in self._plugins:
                    visit(dependency_id)
            order.append(plugin_id)

        for plugin_id in self._plugins:
            visit(plugin_id)
        self._execution_order = order

    def _can_calculate(self, registered: RegisteredPlugin, plugin_input: PluginInput) -> tuple[bool, Optional[str]]:
        try:
            return bool(registered.plugin.can_calculate(plugin_input)), None
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.logger.exception("Error checking applicability of plugin %s", registered.plugin.metadata.id)
            return False, SKIP_REASON_EXECUTION_ERROR.format(message=e)

    def execute_all(
        self,
        plugin_input: PluginInput,
        executor: Optional[Executor] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> dict[str, Any]:
        """
        Run all enabled, applicable plugins and combine their scores.

        Parameters
        ----------
        plugin_input : PluginInput
            Input shared by all plugins.
        executor : Optional[Executor], default=None
            If not None, plugins are submitted to this executor and joined in
            execution order. If None, plugins run one after another in the
            calling thread.
        cancellation : Optional[CancellationToken], default=None
            Checked between plugin executions; defaults to the input's token.

        Returns
        -------
        Dict[str, Any]
            results (per plugin: plugin_id, plugin_name, output, weight,
            weighted_score, execution_time_ms), overall_score,
            total_execution_time_ms, plugins_executed, skipped_plugins
            (plugin_id, reason) and total_weight (the normalization denominator).

        Raises
        ------
        AnalysisCancelledError
            If the run is cancelled; pending plugin executions are cancelled.

        Notes
        -----
        Weights are normalized up front over the enabled plugins that can
        calculate with this input, so they sum to 1 whenever their total is
        positive. Disabled and inapplicable plugins are skipped, and plugins
        raising an exception are skipped with the error message as reason.
        """
        if cancellation is None:
            cancellation = plugin_input.cancellation
        start = time.perf_counter()

        # snapshot of the registration state for this run
        order = [(plugin_id, self._plugins[plugin_id]) for plugin_id in self._execution_order]
        skipped_plugins: list[dict[str, str]] = []
        runnable: list[tuple[str, RegisteredPlugin]] = []
        for plugin_id, registered in order:
            if not registered.enabled:
                skipped_plugins.append({"plugin_id": plugin_id, "reason": SKIP_REASON_DISABLED})
                continue
            can_calculate, error_reason = self._can_calculate(registered, plugin_input)
            if not can_calculate:
                skipped_plugins.append(
                    {"plugin_id": plugin_id, "reason": error_reason or SKIP_REASON_CANNOT_CALCULATE}
                )
                continue
            runnable.append((plugin_id, registered))

        total_weight = sum(registered.weight for _, registered in runnable)
        self.logger.debug(
            "Executing plugins %s (total weight %.3f), skipping %s",
            [plugin_id for plugin_id, _ in runnable],
            total_weight,
            skipped_plugins,
        )

        futures = []
        executed: list[tuple[str, RegisteredPlugin, dict[str, Any], float]] = []
        try:
            for plugin_id, registered in runnable:
                check_cancelled(cancellation, f"before plugin {plugin_id}")
                futures.append(
                    make_future(
                        executor,
                        _timed_calculate,
                        self.logger,
                        registered.plugin,
                        plugin_input,
                        registered.config,
                    )
                )

            for (plugin_id, registered), future in zip(runnable, futures):
                check_cancelled(cancellation, f"before plugin {plugin_id}")
                try:
                    output, execution_time_ms = future.result()
                except AnalysisCancelledError:
                    raise
                except Exception as e:  # pylint: disable=broad-exception-caught
                    self.logger.exception("Error executing plugin %s", plugin_id)
                    skipped_plugins.append(
                        {"plugin_id": plugin_id, "reason": SKIP_REASON_EXECUTION_ERROR.format(message=e)}
                    )
                    continue
                executed.append((plugin_id, registered, output, execution_time_ms))
        except AnalysisCancelledError:
            for future in futures:
                future.cancel()
            raise

        if self.renormalize_after_failures:
            total_weight = sum(registered.weight for _, registered, _, _ in executed)

        results = []
        for plugin_id, registered, output, execution_time_ms in executed:
            weight = registered.weight / total_weight if total_weight > 0 else 0.0
            results.append(
                {
                    "plugin_id": plugin_id,
                    "plugin_name": registered.plugin.metadata.name,
                    "output": output,
                    "weight": weight,
                    "weighted_score": output["score"] * weight,
                    "execution_time_ms": execution_time_ms,
                }
            )

        overall_score = round_half_up(sum(result["weighted_score"] for result in results))
        self.logger.info(
            "Executed %d plugin(s), skipped %d, overall score %d",
            len(results),
            len(skipped_plugins),
            overall_score,
        )
        return {
            "results": results,
            "overall_score": overall_score,
            "total_execution_time_ms": (time.perf_counter() - start) * 1000,
            "plugins_executed": len(results),
            "skipped_plugins": skipped_plugins,
            "total_weight": total_weight,
        }

    def execute_one(self, plugin_id: str, plugin_input: PluginInput) -> Optional[dict[str, Any]]:
        """
        Run a single plugin with its registered configuration, without weighting.

        Returns
        -------
        Optional[Dict[str, Any]]
            The plugin output, or None if the plugin is not registered or cannot
            calculate with this input. Exceptions raised by the plugin propagate.
        """
        registered = self._plugins.get(plugin_id)
        if registered is None:
            self.logger.error("Plugin %s not found", plugin_id)
            return None
        if not registered.plugin.can_calculate(plugin_input):
            self.logger.warning("Plugin %s cannot calculate with provided input", plugin_id)
            return None
        output, _ = _timed_calculate(self.logger, registered.plugin, plugin_input, registered.config)
        return output

    def get_stats(self) -> dict[str, Any]:
        categories = {category: 0 for category in PLUGIN_CATEGORIES}
        for registered in self._plugins.values():
            category = registered.plugin.metadata.category
            categories[category] = categories.get(category, 0) + 1
        return {
            "total_plugins": len(self._plugins),
            "enabled_plugins": sum(1 for rp in self._plugins.values() if rp.enabled),
            "categories": categories,
        }

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._plugins
