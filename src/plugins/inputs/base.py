"""
Input Plugin Base - Abstract interface for front ends.

Input plugins receive desired-state documents from callers and drive the
provider's lifecycle operations:
- HTTP API: REST endpoints
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from events import EventBus
    from provider import Provider


@dataclass
class ValidationResult:
    """Result of a validation operation."""

    is_valid: bool
    error_message: Optional[str] = None


def validate_resource_type(resource_type: str) -> ValidationResult:
    """
    Validate that a resource type is registered.

    Input plugins use this to reject documents for unknown types before
    handing them to the provider.

    Args:
        resource_type: The resource type name to validate

    Returns:
        ValidationResult with is_valid=True if the type exists,
        or is_valid=False with an error message if not found
    """
    from plugins.registry import get_registry

    registry = get_registry()
    if not registry.has_resource_plugin(resource_type):
        available = registry.list_resource_plugins()
        return ValidationResult(
            is_valid=False,
            error_message=f"Unknown resource type: {resource_type}. "
            f"Available types: {', '.join(available) or 'none'}",
        )
    return ValidationResult(is_valid=True)


class InputPlugin(ABC):
    """
    Abstract base class for input plugins.

    The provider and event bus are injected before start() is called.
    """

    _provider: Optional["Provider"] = None
    _event_bus: Optional["EventBus"] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this plugin (e.g., 'http')."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        """Plugin version string."""
        pass

    @abstractmethod
    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the plugin with configuration.

        Args:
            config: Plugin-specific configuration dictionary
        """
        pass

    @abstractmethod
    async def start(self) -> None:
        """
        Start the input plugin.

        For HTTP plugins, this starts the HTTP server and returns when it
        stops serving.
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the input plugin gracefully."""
        pass

    @abstractmethod
    async def health_check(self) -> tuple[bool, str]:
        """
        Check if the input plugin is healthy.

        Returns:
            Tuple of (is_healthy, status_message).
        """
        pass

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """
        Load plugin-specific configuration from environment variables.

        Returns:
            Dictionary of configuration values for this plugin.
        """
        return {}

    def set_provider(self, provider: Optional["Provider"]) -> None:
        """Inject the provider that executes lifecycle operations."""
        self._provider = provider

    def set_event_bus(self, event_bus: Optional["EventBus"]) -> None:
        """Inject the event bus used for streaming."""
        self._event_bus = event_bus

    @property
    def provider(self) -> Optional["Provider"]:
        return self._provider

    @property
    def event_bus(self) -> Optional["EventBus"]:
        return self._event_bus
