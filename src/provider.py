"""
Provider - Dispatches resource lifecycle operations to resource plugins.

Each operation validates the desired spec, calls the resource plugin,
persists the resulting state, records the operation in history and
publishes an event. Errors are recorded and then propagated to the caller.
"""

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from aws import AWSClient
from config import RetryConfig
from db import DatabaseManager
from errors import NotFoundError, UnknownResourceTypeError, ValidationError
from events import EventBus, EventType, ResourceEvent
from plugins import OperationRecord, OperationType, ResourceContext, get_registry
from plugins.registry import PluginRegistry
from plugins.resources.base import ResourcePlugin

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Configuration for the provider."""

    plugin_configs: Optional[Dict[str, Dict[str, Any]]] = None
    history_limit: int = 10

    def __post_init__(self):
        if self.plugin_configs is None:
            self.plugin_configs = {}


def _normalize(value: Any) -> Any:
    """
    Bring a spec value into a comparable form.

    Empty values compare equal to an absent key. Lists of scalars are
    unordered sets, so they compare sorted.
    """
    if value in (None, "", [], {}):
        return None
    if isinstance(value, list) and all(
        isinstance(item, (str, int, float, bool)) for item in value
    ):
        return sorted(value, key=lambda item: (type(item).__name__, item))
    return value


class Provider:
    """
    Executes create/read/update/delete/import for any registered resource
    type and keeps the state store in step with the remote objects.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        aws: AWSClient,
        registry: Optional[PluginRegistry] = None,
        config: Optional[ProviderConfig] = None,
        retry: Optional[RetryConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.db = db_manager
        self.aws = aws
        self.registry = registry or get_registry()
        self.config = config or ProviderConfig()
        self.retry = retry or RetryConfig()
        self._event_bus = event_bus

    async def _get_plugin(self, resource_type: str) -> ResourcePlugin:
        """
        Get the initialized plugin for a resource type.

        Raises:
            UnknownResourceTypeError: If no plugin handles the resource type
        """
        return await self.registry.get_resource_plugin(
            resource_type, self.config.plugin_configs.get(resource_type)
        )

    def _context(self, resource_type: str) -> ResourceContext:
        return ResourceContext(
            resource_type=resource_type,
            aws=self.aws,
            retry=self.retry,
            plugin_config=dict(self.config.plugin_configs.get(resource_type, {})),
        )

    async def _publish(
        self,
        event_type: EventType,
        resource_type: str,
        resource_id: str,
        state: Optional[Dict[str, Any]],
    ) -> None:
        if self._event_bus:
            event = ResourceEvent.from_state(
                event_type, resource_type, resource_id, state
            )
            await self._event_bus.publish(event)

    @asynccontextmanager
    async def _operation(
        self,
        resource_type: str,
        resource_id: Optional[str],
        operation: OperationType,
    ) -> AsyncIterator[OperationRecord]:
        """Time an operation and record its outcome in history."""
        record = OperationRecord(
            resource_type=resource_type,
            resource_id=resource_id,
            operation=operation,
        )
        start_time = time.monotonic()
        try:
            yield record
            record.success = True
        except Exception as e:
            record.error_message = str(e)
            logger.error(
                f"Error during {operation.value} of {resource_type} "
                f"({record.resource_id or 'new'}): {e}"
            )
            raise
        finally:
            record.duration_seconds = time.monotonic() - start_time
            await self.db.record_operation(record)

    async def _get_stored(self, resource_type: str, resource_id: str) -> Dict[str, Any]:
        stored = await self.db.get_state(resource_type, resource_id)
        if stored is None:
            raise NotFoundError(f"{resource_type} {resource_id} is not managed")
        return stored

    # ==================== Lifecycle Operations ====================

    async def create(
        self, resource_type: str, spec: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Create a remote object from a desired spec.

        Returns:
            The persisted state.
        """
        plugin = await self._get_plugin(resource_type)

        async with self._operation(resource_type, None, OperationType.CREATE) as record:
            plugin.validate_spec(spec)
            state = await plugin.create(spec, self._context(resource_type))
            record.resource_id = state["id"]
            await self.db.put_state(resource_type, state["id"], spec, state)

        logger.info(f"Created {resource_type} {state['id']}")
        await self._publish(EventType.CREATED, resource_type, state["id"], state)
        return state

    async def read(
        self, resource_type: str, resource_id: str
    ) -> Optional[Dict[str, Any]]:
        """
        Refresh the stored state of a resource from AWS.

        Returns:
            The refreshed state, or None if the remote object is gone, in
            which case the stored state is dropped.

        Raises:
            NotFoundError: If the resource is not managed
        """
        plugin = await self._get_plugin(resource_type)
        stored = await self._get_stored(resource_type, resource_id)
        prior_state = stored["state"]

        async with self._operation(
            resource_type, resource_id, OperationType.READ
        ) as record:
            state = await plugin.read(prior_state, self._context(resource_type))
            if state is None:
                await self.db.delete_state(resource_type, resource_id)
            else:
                record.drift_detected = state != prior_state
                await self.db.put_state(
                    resource_type, resource_id, stored["spec"], state
                )

        if state is None:
            logger.warning(f"{resource_type} {resource_id} no longer exists")
            await self._publish(EventType.REMOVED, resource_type, resource_id, None)
        elif record.drift_detected:
            logger.info(f"Drift detected for {resource_type} {resource_id}")
            await self._publish(EventType.DRIFTED, resource_type, resource_id, state)

        return state

    async def update(
        self, resource_type: str, resource_id: str, spec: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Move a managed resource to a new desired spec.

        Changing a field the plugin lists in requires_replace deletes the
        remote object and creates a new one.

        Returns:
            The persisted state.

        Raises:
            NotFoundError: If the resource is not managed
        """
        plugin = await self._get_plugin(resource_type)
        stored = await self._get_stored(resource_type, resource_id)
        ctx = self._context(resource_type)

        async with self._operation(
            resource_type, resource_id, OperationType.UPDATE
        ) as record:
            plugin.validate_spec(spec)
            changed = self.replace_fields(
                plugin, spec, stored["spec"], stored["state"]
            )

            if changed:
                logger.info(
                    f"Replacing {resource_type} {resource_id}: "
                    f"{', '.join(changed)} changed"
                )
                await plugin.delete(stored["state"], ctx)
                await self.db.delete_state(resource_type, resource_id)
                state = await plugin.create(spec, ctx)
            else:
                state = await plugin.update(spec, stored["state"], ctx)

            if state["id"] != resource_id:
                await self.db.delete_state(resource_type, resource_id)
                record.resource_id = state["id"]
            await self.db.put_state(resource_type, state["id"], spec, state)

        logger.info(f"Updated {resource_type} {state['id']}")
        await self._publish(EventType.UPDATED, resource_type, state["id"], state)
        return state

    async def delete(self, resource_type: str, resource_id: str) -> None:
        """
        Delete a managed resource. Deleting an unmanaged id is a no-op.
        """
        plugin = await self._get_plugin(resource_type)
        stored = await self.db.get_state(resource_type, resource_id)
        if stored is None:
            logger.info(f"{resource_type} {resource_id} is not managed, nothing to delete")
            return

        async with self._operation(resource_type, resource_id, OperationType.DELETE):
            await plugin.delete(stored["state"], self._context(resource_type))
            await self.db.delete_state(resource_type, resource_id)

        logger.info(f"Deleted {resource_type} {resource_id}")
        await self._publish(EventType.DELETED, resource_type, resource_id, None)

    async def import_resource(
        self, resource_type: str, resource_id: str
    ) -> Dict[str, Any]:
        """
        Bring an existing remote object under management.

        Raises:
            ValidationError: If the id is already managed
            NotFoundError: If no remote object exists under the id
        """
        plugin = await self._get_plugin(resource_type)
        if await self.db.get_state(resource_type, resource_id) is not None:
            raise ValidationError(f"{resource_type} {resource_id} is already managed")

        async with self._operation(
            resource_type, resource_id, OperationType.IMPORT
        ) as record:
            state = await plugin.import_state(
                resource_id, self._context(resource_type)
            )
            if state is None:
                raise NotFoundError(
                    f"Cannot import non-existent remote object {resource_type} "
                    f"({resource_id})"
                )
            record.resource_id = state["id"]
            spec = self.spec_from_state(plugin, state)
            await self.db.put_state(resource_type, state["id"], spec, state)

        logger.info(f"Imported {resource_type} {state['id']}")
        await self._publish(EventType.IMPORTED, resource_type, state["id"], state)
        return state

    # ==================== Queries ====================

    async def list_resources(
        self, resource_type: Optional[str] = None, limit: int = 100
    ) -> List[Dict[str, Any]]:
        """List managed resources, optionally of one type."""
        if resource_type and not self.registry.has_resource_plugin(resource_type):
            raise UnknownResourceTypeError(f"Unknown resource type: {resource_type}")
        return await self.db.list_states(resource_type, limit=limit)

    async def history(
        self, resource_type: str, resource_id: str, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Get the most recent operations on a resource."""
        return await self.db.get_operation_history(
            resource_type, resource_id, limit=limit or self.config.history_limit
        )

    def list_resource_types(self) -> List[Dict[str, Any]]:
        """Describe every registered resource type."""
        types = []
        for name in self.registry.list_resource_plugins():
            info = self.registry.get_resource_plugin_info(name)
            if info:
                types.append(info)
        return types

    # ==================== Helpers ====================

    @staticmethod
    def replace_fields(
        plugin: ResourcePlugin,
        spec: Dict[str, Any],
        prior_spec: Dict[str, Any],
        prior_state: Optional[Dict[str, Any]] = None,
    ) -> List[str]:
        """
        Return the requires_replace fields whose value changed.

        A computed field left unset in the new spec keeps whatever the remote
        side assigned, so it never counts as a change. A computed field the
        prior spec left unset is compared against the prior state instead,
        or skipped when no state is given.
        """
        computed = set(plugin.computed)
        changed = []
        for field in plugin.requires_replace:
            new = _normalize(spec.get(field))
            old = _normalize(prior_spec.get(field))
            if field in computed:
                if new is None:
                    continue
                if old is None:
                    if prior_state is None:
                        continue
                    old = _normalize(prior_state.get(field))
            if new != old:
                changed.append(field)
        return changed

    @staticmethod
    def spec_from_state(
        plugin: ResourcePlugin, state: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Derive a spec for an imported resource from its state.

        Computed fields stay out of the spec; they live in the state only.
        """
        properties = plugin.schema.get("properties", {})
        computed = set(plugin.computed)
        return {
            key: value
            for key, value in state.items()
            if key in properties
            and key not in computed
            and _normalize(value) is not None
        }
