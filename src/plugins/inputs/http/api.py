"""
HTTP Input Plugin - REST API for resource lifecycle operations.

This plugin provides a FastAPI-based REST API that drives the provider:
create, read, update, delete and import of managed AWS resources, plus
operation history and an SSE event stream.
"""

import asyncio
import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Response
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, field_validator

from errors import (
    EmptyResultError,
    NotFoundError,
    ProviderError,
    RemoteError,
    UnknownResourceTypeError,
    ValidationError,
)
from events import EventFilter, EventType
from plugins.inputs.base import InputPlugin, validate_resource_type

logger = logging.getLogger(__name__)

MAX_SPEC_SIZE = 1024 * 1024  # 1MB max for a spec


def validate_json_size(value: Dict[str, Any], field_name: str) -> Dict[str, Any]:
    """Validate that JSON data doesn't exceed size limits."""
    json_str = json.dumps(value)
    if len(json_str) > MAX_SPEC_SIZE:
        raise ValueError(
            f"{field_name} exceeds maximum size of {MAX_SPEC_SIZE // 1024}KB"
        )
    return value


def to_http_exception(error: Exception) -> HTTPException:
    """Map a provider error to the HTTP status it is reported with."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=422, detail=error.message)
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, UnknownResourceTypeError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (RemoteError, EmptyResultError)):
        return HTTPException(status_code=502, detail=error.message)
    return HTTPException(status_code=500, detail=str(error))


def parse_event_types(values: Optional[List[str]]) -> Optional[FrozenSet[EventType]]:
    """Turn event_type query values into a set, rejecting unknown names with 422."""
    if not values:
        return None
    try:
        return frozenset(EventType(value.upper()) for value in values)
    except ValueError as e:
        valid = ", ".join(t.value for t in EventType)
        raise HTTPException(
            status_code=422, detail=f"Unknown event type in {values}; valid: {valid}"
        ) from e


# Request models


class ResourceApply(BaseModel):
    """Request model for creating or updating a resource."""

    spec: Dict[str, Any] = Field(..., description="Desired state of the resource")

    @field_validator("spec")
    @classmethod
    def validate_spec_size(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        return validate_json_size(v, "spec")


class ResourceImport(BaseModel):
    """Request model for importing an existing remote object."""

    id: str = Field(..., min_length=1, description="Identifier of the remote object")


# Response models


class ResourceTypeResponse(BaseModel):
    """Response model for a resource type."""

    name: str
    version: str
    spec_schema: Dict[str, Any]
    requires_replace: List[str] = []


class ResourceStateResponse(BaseModel):
    """Response model for a managed resource."""

    resource_type: str
    resource_id: str
    state: Dict[str, Any]
    spec: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OperationHistoryResponse(BaseModel):
    """Response model for one entry of operation history."""

    id: int
    resource_type: str
    resource_id: Optional[str] = None
    operation: str
    success: bool
    error_message: Optional[str] = None
    duration_seconds: Optional[float] = None
    drift_detected: bool = False
    operation_time: datetime


class PluginInfo(BaseModel):
    """Response model for plugin information."""

    name: str
    version: str


def _stored_response(row: Dict[str, Any]) -> ResourceStateResponse:
    return ResourceStateResponse(
        resource_type=row["resource_type"],
        resource_id=row["resource_id"],
        state=row["state"],
        spec=row.get("spec"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class HTTPInputPlugin(InputPlugin):
    """
    Input plugin that provides a REST API for resource management.

    Implements the standard InputPlugin interface using FastAPI.
    """

    def __init__(self):
        self.app: Optional[FastAPI] = None
        self.host: str = "0.0.0.0"
        self.port: int = 8000
        self.log_level: str = "info"
        self.server = None
        self._config: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return "http"

    @property
    def version(self) -> str:
        return "1.0.0"

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """Load HTTP plugin configuration from environment variables."""
        return {
            "host": os.getenv("API_HOST", "0.0.0.0"),
            "port": int(os.getenv("API_PORT", "8000")),
            "log_level": os.getenv("LOG_LEVEL", "info").lower(),
        }

    async def initialize(self, config: Dict[str, Any]) -> None:
        """Initialize the HTTP API plugin and its routes."""
        self._config = config
        self.host = config.get("host", "0.0.0.0")
        self.port = config.get("port", 8000)
        self.log_level = config.get("log_level", "info")

        self.app = FastAPI(
            title="AWS Resource Provider API",
            description="Declarative lifecycle management of AWS control-plane resources",
            version="1.0.0",
        )
        self._setup_routes()

        logger.info(f"HTTP input plugin initialized on {self.host}:{self.port}")

    def _require_provider(self):
        if not self._provider:
            raise HTTPException(status_code=503, detail="Provider not available")
        return self._provider

    def _setup_routes(self) -> None:
        """
        Set up all FastAPI routes for the REST API.

        Configures the following endpoint groups:
        - Health check: GET /
        - Resource types: GET /api/v1/resource-types
        - Resources: /api/v1/resources/{type}[/{id}]
        - Import: POST /api/v1/resources/{type}/import
        - History: GET /api/v1/history/{type}/{id}
        - Plugin discovery: GET /api/v1/plugins/inputs
        - Events: GET /api/v1/events

        Raises:
            RuntimeError: If the FastAPI app has not been initialized
        """
        if not self.app:
            raise RuntimeError("App not initialized")

        @self.app.get("/")
        async def health_check():
            """Health check endpoint."""
            return {"status": "ok", "service": "awsprov"}

        # ==================== Resource Type Endpoints ====================

        @self.app.get(
            "/api/v1/resource-types", response_model=List[ResourceTypeResponse]
        )
        async def list_resource_types():
            """List the resource types this provider manages."""
            provider = self._require_provider()
            return [
                ResourceTypeResponse(
                    name=info["name"],
                    version=info["version"],
                    spec_schema=info["schema"],
                    requires_replace=info.get("requires_replace", []),
                )
                for info in provider.list_resource_types()
            ]

        # ==================== Resource Endpoints ====================

        @self.app.post(
            "/api/v1/resources/{resource_type}",
            response_model=ResourceStateResponse,
            status_code=201,
        )
        async def create_resource(resource_type: str, body: ResourceApply):
            """Create a resource from its desired spec."""
            provider = self._require_provider()
            check = validate_resource_type(resource_type)
            if not check.is_valid:
                raise HTTPException(status_code=404, detail=check.error_message)

            try:
                state = await provider.create(resource_type, body.spec)
            except (ProviderError, UnknownResourceTypeError) as e:
                raise to_http_exception(e) from e

            return ResourceStateResponse(
                resource_type=resource_type,
                resource_id=state["id"],
                state=state,
                spec=body.spec,
            )

        @self.app.get(
            "/api/v1/resources/{resource_type}",
            response_model=List[ResourceStateResponse],
        )
        async def list_resources(resource_type: str, limit: int = 100):
            """List managed resources of a type."""
            provider = self._require_provider()
            try:
                rows = await provider.list_resources(resource_type, limit=limit)
            except (ProviderError, UnknownResourceTypeError) as e:
                raise to_http_exception(e) from e
            return [_stored_response(row) for row in rows]

        @self.app.get("/api/v1/resources", response_model=List[ResourceStateResponse])
        async def list_all_resources(limit: int = 100):
            """List all managed resources."""
            provider = self._require_provider()
            rows = await provider.list_resources(None, limit=limit)
            return [_stored_response(row) for row in rows]

        @self.app.post(
            "/api/v1/resources/{resource_type}/import",
            response_model=ResourceStateResponse,
            status_code=201,
        )
        async def import_resource(resource_type: str, body: ResourceImport):
            """Bring an existing remote object under management."""
            provider = self._require_provider()
            try:
                state = await provider.import_resource(resource_type, body.id)
            except (ProviderError, UnknownResourceTypeError) as e:
                raise to_http_exception(e) from e

            return ResourceStateResponse(
                resource_type=resource_type,
                resource_id=state["id"],
                state=state,
            )

        @self.app.get(
            "/api/v1/resources/{resource_type}/{resource_id:path}",
            response_model=ResourceStateResponse,
        )
        async def get_resource(resource_type: str, resource_id: str, refresh: bool = True):
            """
            Get a managed resource.

            With refresh (the default) the state is read from AWS first. A
            resource whose remote object is gone is dropped and reported as
            404.
            """
            provider = self._require_provider()
            try:
                if not refresh:
                    stored = await provider.db.get_state(resource_type, resource_id)
                    if stored is None:
                        raise NotFoundError(
                            f"{resource_type} {resource_id} is not managed"
                        )
                    return _stored_response(stored)

                state = await provider.read(resource_type, resource_id)
            except (ProviderError, UnknownResourceTypeError) as e:
                raise to_http_exception(e) from e

            if state is None:
                raise HTTPException(
                    status_code=404,
                    detail=f"{resource_type} {resource_id} no longer exists "
                    f"and was removed from state",
                )
            return ResourceStateResponse(
                resource_type=resource_type,
                resource_id=state["id"],
                state=state,
            )

        @self.app.put(
            "/api/v1/resources/{resource_type}/{resource_id:path}",
            response_model=ResourceStateResponse,
        )
        async def update_resource(
            resource_type: str, resource_id: str, body: ResourceApply
        ):
            """Move a managed resource to a new desired spec."""
            provider = self._require_provider()
            try:
                state = await provider.update(resource_type, resource_id, body.spec)
            except (ProviderError, UnknownResourceTypeError) as e:
                raise to_http_exception(e) from e

            return ResourceStateResponse(
                resource_type=resource_type,
                resource_id=state["id"],
                state=state,
                spec=body.spec,
            )

        @self.app.delete(
            "/api/v1/resources/{resource_type}/{resource_id:path}", status_code=204
        )
        async def delete_resource(resource_type: str, resource_id: str):
            """Delete a managed resource."""
            provider = self._require_provider()
            try:
                await provider.delete(resource_type, resource_id)
            except (ProviderError, UnknownResourceTypeError) as e:
                raise to_http_exception(e) from e
            return Response(status_code=204)

        # ==================== History Endpoints ====================

        @self.app.get(
            "/api/v1/history/{resource_type}/{resource_id:path}",
            response_model=List[OperationHistoryResponse],
        )
        async def get_operation_history(
            resource_type: str, resource_id: str, limit: int = 10
        ):
            """Get the most recent operations on a resource."""
            provider = self._require_provider()
            return await provider.history(resource_type, resource_id, limit=limit)

        # Plugin discovery endpoints
        @self.app.get("/api/v1/plugins/inputs", response_model=List[PluginInfo])
        async def list_input_plugins():
            """List available input plugins."""
            from plugins.registry import get_registry

            registry = get_registry()
            plugins = []
            for name in registry.list_input_plugins():
                info = registry.get_input_plugin_info(name)
                if info:
                    plugins.append(PluginInfo(**info))
            return plugins

        # ==================== Event Streaming Endpoints ====================

        @self.app.get("/api/v1/events")
        async def stream_events(
            resource_type: Optional[str] = None,
            resource_id: Optional[str] = None,
            event_type: Optional[List[str]] = Query(None),
        ):
            """
            SSE stream of resource events.

            Narrow the stream with resource_type, resource_id and one or more
            event_type parameters (e.g. ?event_type=DRIFTED&event_type=REMOVED).
            """
            if not self._event_bus:
                raise HTTPException(
                    status_code=503,
                    detail="Event streaming not available",
                )

            event_filter = EventFilter(
                resource_type=resource_type,
                resource_id=resource_id,
                event_types=parse_event_types(event_type),
            )
            subscriber_id, subscription = await self._event_bus.subscribe(event_filter)

            async def event_generator():
                try:
                    async for event in subscription:
                        yield event.to_sse()
                except asyncio.CancelledError:
                    logger.debug(f"Event stream {subscriber_id} cancelled")
                    raise
                finally:
                    await self._event_bus.unsubscribe(subscriber_id)

            return StreamingResponse(
                event_generator(),
                media_type="text/event-stream",
                headers={
                    "Cache-Control": "no-cache",
                    "X-Accel-Buffering": "no",
                },
            )

    async def start(self) -> None:
        """Start the HTTP server."""
        if not self.app:
            raise RuntimeError("App not initialized")

        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level=self.log_level,
        )
        self.server = uvicorn.Server(config)

        logger.info(f"Starting HTTP input plugin on {self.host}:{self.port}")
        await self.server.serve()

    async def stop(self) -> None:
        """Stop the HTTP server gracefully."""
        logger.info("Stopping HTTP input plugin")
        if self.server:
            self.server.should_exit = True

    async def health_check(self) -> tuple[bool, str]:
        """Check if the HTTP API is healthy."""
        if self.server and self.server.started:
            return True, "HTTP API is running"
        return False, "HTTP API is not running"
