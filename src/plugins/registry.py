"""
Plugin Registry - Discovery and registration of plugins.

This module provides the central registry for all plugins, handling
discovery, registration, and instantiation.
"""

from importlib.metadata import entry_points
from typing import Any, Dict, List, Optional, Type

from errors import UnknownResourceTypeError
from plugins.base import logger
from plugins.inputs.base import InputPlugin
from plugins.resources.base import ResourcePlugin
from validation import validate_schema

ENTRY_POINT_GROUP = "awsprov.resources"


class PluginRegistry:
    """
    Central registry for all plugins.

    Handles discovery, registration, and instantiation of resource and
    input plugins.
    """

    def __init__(self):
        # Registered plugin classes (not instantiated)
        self._resource_plugins: Dict[str, Type[ResourcePlugin]] = {}
        self._input_plugins: Dict[str, Type[InputPlugin]] = {}

        # Cached plugin metadata gathered at registration
        self._resource_plugin_info: Dict[str, Dict[str, Any]] = {}
        self._input_plugin_info: Dict[str, Dict[str, str]] = {}

        # Instantiated and initialized plugin instances
        self._resource_instances: Dict[str, ResourcePlugin] = {}
        self._input_instances: Dict[str, InputPlugin] = {}

        # Plugin configurations loaded from environment
        self._resource_plugin_configs: Dict[str, Dict[str, Any]] = {}
        self._input_plugin_configs: Dict[str, Dict[str, Any]] = {}

    # Registration methods

    def register_resource_plugin(self, plugin_class: Type[ResourcePlugin]) -> None:
        """
        Register a resource plugin class under its resource type name.

        Args:
            plugin_class: The ResourcePlugin subclass to register

        Raises:
            ValueError: If the plugin schema is not valid Draft 7
        """
        # Temporary instance to read name/version/schema once
        temp_instance = plugin_class()
        name = temp_instance.name

        is_valid, error = validate_schema(temp_instance.schema)
        if not is_valid:
            raise ValueError(f"Resource plugin {name} has an invalid schema: {error}")

        if name in self._resource_plugins:
            logger.warning(f"Overwriting existing resource plugin: {name}")

        self._resource_plugins[name] = plugin_class
        self._resource_plugin_info[name] = {
            "name": name,
            "version": temp_instance.version,
            "schema": temp_instance.schema,
            "requires_replace": temp_instance.requires_replace,
        }
        self._resource_plugin_configs[name] = plugin_class.load_config_from_env()
        logger.info(f"Registered resource plugin: {name} v{temp_instance.version}")

    def register_input_plugin(self, plugin_class: Type[InputPlugin]) -> None:
        """
        Register an input plugin class.

        Args:
            plugin_class: The InputPlugin subclass to register
        """
        temp_instance = plugin_class()
        name = temp_instance.name
        version = temp_instance.version

        if name in self._input_plugins:
            logger.warning(f"Overwriting existing input plugin: {name}")

        self._input_plugins[name] = plugin_class
        self._input_plugin_info[name] = {"name": name, "version": version}
        self._input_plugin_configs[name] = plugin_class.load_config_from_env()
        logger.info(f"Registered input plugin: {name} v{version}")

    # Instantiation methods

    async def get_resource_plugin(
        self, name: str, config: Optional[Dict[str, Any]] = None
    ) -> ResourcePlugin:
        """
        Get an initialized resource plugin instance.

        Args:
            name: The resource type name
            config: Optional configuration to pass to initialize()

        Returns:
            An initialized ResourcePlugin instance

        Raises:
            UnknownResourceTypeError: If no plugin handles the resource type
        """
        if name not in self._resource_plugins:
            available = ", ".join(self._resource_plugins.keys()) or "none"
            raise UnknownResourceTypeError(
                f"Unknown resource type: {name}. Available types: {available}"
            )

        if name not in self._resource_instances:
            plugin = self._resource_plugins[name]()
            merged = dict(self._resource_plugin_configs.get(name, {}))
            merged.update(config or {})
            await plugin.initialize(merged)
            self._resource_instances[name] = plugin
            logger.info(f"Initialized resource plugin: {name}")

        return self._resource_instances[name]

    async def get_input_plugin(
        self, name: str, config: Optional[Dict[str, Any]] = None
    ) -> InputPlugin:
        """
        Get an initialized input plugin instance.

        Args:
            name: The plugin name to retrieve
            config: Optional configuration to pass to initialize()

        Returns:
            An initialized InputPlugin instance

        Raises:
            ValueError: If the plugin name is not registered
        """
        if name not in self._input_plugins:
            available = ", ".join(self._input_plugins.keys()) or "none"
            raise ValueError(
                f"Unknown input plugin: {name}. Available plugins: {available}"
            )

        if name not in self._input_instances:
            plugin = self._input_plugins[name]()
            await plugin.initialize(config or {})
            self._input_instances[name] = plugin
            logger.info(f"Initialized input plugin: {name}")

        return self._input_instances[name]

    # Discovery methods

    def list_resource_plugins(self) -> List[str]:
        """List all registered resource type names."""
        return list(self._resource_plugins.keys())

    def list_input_plugins(self) -> List[str]:
        """List all registered input plugin names."""
        return list(self._input_plugins.keys())

    def has_resource_plugin(self, name: str) -> bool:
        """Check if a resource type is registered."""
        return name in self._resource_plugins

    def has_input_plugin(self, name: str) -> bool:
        """Check if an input plugin is registered."""
        return name in self._input_plugins

    def get_resource_plugin_info(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Get information about a registered resource plugin.

        Returns:
            Dictionary with 'name', 'version', 'schema' and
            'requires_replace', or None if not found
        """
        return self._resource_plugin_info.get(name)

    def get_input_plugin_info(self, name: str) -> Optional[Dict[str, str]]:
        """Get name/version of a registered input plugin, or None."""
        return self._input_plugin_info.get(name)

    def get_input_plugin_config(self, name: str) -> Dict[str, Any]:
        """Get the environment-loaded configuration of an input plugin."""
        return dict(self._input_plugin_configs.get(name, {}))


# Global registry instance
_registry: Optional[PluginRegistry] = None


def get_registry() -> PluginRegistry:
    """Get the global plugin registry singleton."""
    global _registry
    if _registry is None:
        _registry = PluginRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_plugins(enabled_resources: Optional[List[str]] = None) -> None:
    """
    Register the built-in plugins and discover resource plugins via entry
    points.

    Args:
        enabled_resources: Resource type names to keep. Empty or None
            registers everything found.
    """
    registry = get_registry()

    from plugins.resources.elbv2 import TargetGroupRegistrationPlugin
    from plugins.resources.macie2 import CustomDataIdentifierPlugin
    from plugins.resources.sagemaker import ServicecatalogPortfolioStatusPlugin

    candidates: List[Type[ResourcePlugin]] = [
        TargetGroupRegistrationPlugin,
        CustomDataIdentifierPlugin,
        ServicecatalogPortfolioStatusPlugin,
    ]

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            candidates.append(ep.load())
        except Exception as e:
            logger.warning(f"Could not load resource plugin {ep.name}: {e}")

    for plugin_class in candidates:
        try:
            if enabled_resources and plugin_class().name not in enabled_resources:
                continue
            registry.register_resource_plugin(plugin_class)
        except Exception as e:
            logger.warning(f"Could not register resource plugin {plugin_class}: {e}")

    try:
        from plugins.inputs.http import HTTPInputPlugin

        registry.register_input_plugin(HTTPInputPlugin)
    except ImportError as e:
        logger.warning(f"Could not load HTTP input plugin: {e}")
