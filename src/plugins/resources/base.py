"""
Resource Plugin Base - Abstract interface for resource types.

A resource plugin owns the schema of one resource type and translates its
create/read/update/delete/import lifecycle into calls against the cloud
control-plane API. Plugins are discovered via Python entry points in the
'awsprov.resources' group, in addition to the built-in ones.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from errors import ValidationError
from plugins.base import ResourceContext
from validation import validate_spec_against_schema


class ResourcePlugin(ABC):
    """
    Abstract base class for resource plugins.

    State passed in and out of the lifecycle methods is a plain dict that
    always carries an 'id' key. Returning None from read() means the remote
    object is gone and the state should be dropped.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Resource type name (e.g., 'aws_lb_target_group_registration')."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        """Plugin version string."""
        pass

    @property
    @abstractmethod
    def schema(self) -> Dict[str, Any]:
        """JSON Schema (Draft 7) describing a valid spec."""
        pass

    @property
    def requires_replace(self) -> List[str]:
        """Spec fields whose change forces delete + create."""
        return []

    @property
    def computed(self) -> List[str]:
        """Optional spec fields the remote side fills in when left unset."""
        return []

    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the plugin with configuration.

        Called once when the plugin is first used.

        Args:
            config: Plugin-specific configuration dictionary
        """
        self.config = config

    def validate_spec(self, spec: Dict[str, Any]) -> None:
        """
        Validate a desired-state spec before any remote call is made.

        Raises:
            ValidationError: If the spec does not match the schema
        """
        is_valid, error = validate_spec_against_schema(spec, self.schema)
        if not is_valid:
            raise ValidationError(f"invalid {self.name} spec: {error}")

    @abstractmethod
    async def create(self, spec: Dict[str, Any], ctx: ResourceContext) -> Dict[str, Any]:
        """
        Create the remote object.

        Args:
            spec: The validated desired state
            ctx: The resource context

        Returns:
            The state to persist.
        """
        pass

    @abstractmethod
    async def read(
        self, state: Dict[str, Any], ctx: ResourceContext
    ) -> Optional[Dict[str, Any]]:
        """
        Refresh state from the remote object.

        Args:
            state: The previously persisted state
            ctx: The resource context

        Returns:
            The refreshed state, or None if the remote object no longer exists.
        """
        pass

    @abstractmethod
    async def update(
        self,
        spec: Dict[str, Any],
        prior_state: Dict[str, Any],
        ctx: ResourceContext,
    ) -> Dict[str, Any]:
        """
        Update the remote object in place.

        Only called when no requires_replace field changed.

        Args:
            spec: The validated desired state
            prior_state: The previously persisted state
            ctx: The resource context

        Returns:
            The state to persist.
        """
        pass

    @abstractmethod
    async def delete(self, state: Dict[str, Any], ctx: ResourceContext) -> None:
        """
        Delete the remote object. Must succeed if it is already gone.

        Args:
            state: The previously persisted state
            ctx: The resource context
        """
        pass

    async def import_state(
        self, resource_id: str, ctx: ResourceContext
    ) -> Optional[Dict[str, Any]]:
        """
        Derive full state from an identifier alone.

        The default treats the identifier as the 'id' attribute and reads.

        Returns:
            The imported state, or None if nothing exists under that id.
        """
        return await self.read({"id": resource_id}, ctx)

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """
        Load plugin-specific configuration from environment variables.

        Override this method in subclasses to define how the plugin
        loads its configuration from the environment.

        Returns:
            Dictionary of configuration values for this plugin.
        """
        return {}
