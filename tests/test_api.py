"""Unit tests for the HTTP input plugin."""

import asyncio
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from conftest import TARGET_GROUP_ARN, client_error
from errors import (
    EmptyResultError,
    NotFoundError,
    RemoteError,
    UnknownResourceTypeError,
    ValidationError,
)
from plugins.inputs.http import HTTPInputPlugin
from events import EventBus, EventType
from plugins.inputs.http.api import MAX_SPEC_SIZE, parse_event_types, to_http_exception
from plugins.registry import get_registry, reset_registry
from plugins.resources.elbv2 import TargetGroupRegistrationPlugin

RESOURCE_TYPE = "aws_lb_target_group_registration"
STATE = {
    "id": TARGET_GROUP_ARN,
    "target_group_arn": TARGET_GROUP_ARN,
    "target": [{"target_id": "i-1", "availability_zone": None, "port": 80}],
}
SPEC = {"target_group_arn": TARGET_GROUP_ARN, "target": [{"target_id": "i-1"}]}


@pytest.fixture
def provider():
    provider = MagicMock()
    methods = ("create", "read", "update", "delete", "import_resource", "list_resources", "history")
    for method in methods:
        setattr(provider, method, AsyncMock())
    provider.db = MagicMock()
    provider.db.get_state = AsyncMock()
    return provider


@pytest.fixture
def plugin(provider):
    reset_registry()
    registry = get_registry()
    registry.register_resource_plugin(TargetGroupRegistrationPlugin)
    registry.register_input_plugin(HTTPInputPlugin)

    plugin = HTTPInputPlugin()
    asyncio.run(plugin.initialize({"port": 8080}))
    plugin.set_provider(provider)
    yield plugin
    reset_registry()


@pytest.fixture
def client(plugin):
    return TestClient(plugin.app)


class TestErrorMapping:
    """Tests for to_http_exception()."""

    @pytest.mark.parametrize(
        "error,status",
        [
            (ValidationError("bad"), 422),
            (NotFoundError("gone"), 404),
            (UnknownResourceTypeError("nope"), 404),
            (
                RemoteError("ELBv2", "reading", "Target Group Registration", "arn", client_error("X")),
                502,
            ),
            (EmptyResultError({}), 502),
            (RuntimeError("boom"), 500),
        ],
    )
    def test_status_codes(self, error, status):
        assert to_http_exception(error).status_code == status


class TestPlugin:
    """Tests for plugin wiring."""

    def test_initialize_reads_config(self, plugin):
        assert plugin.port == 8080
        assert plugin.host == "0.0.0.0"

    def test_health_check_not_running(self, plugin):
        assert asyncio.run(plugin.health_check()) == (False, "HTTP API is not running")

    def test_no_provider_is_503(self, plugin, client):
        plugin.set_provider(None)

        response = client.get("/api/v1/resources")

        assert response.status_code == 503


class TestRoutes:
    """Tests for the REST endpoints."""

    def test_root(self, client):
        assert client.get("/").json() == {"status": "ok", "service": "awsprov"}

    def test_list_resource_types(self, client, provider):
        provider.list_resource_types = MagicMock(
            return_value=[
                {
                    "name": RESOURCE_TYPE,
                    "version": "1.0.0",
                    "schema": {"type": "object"},
                    "requires_replace": ["target_group_arn"],
                }
            ]
        )

        response = client.get("/api/v1/resource-types")

        assert response.status_code == 200
        assert response.json()[0]["spec_schema"] == {"type": "object"}

    def test_create(self, client, provider):
        provider.create.return_value = STATE

        response = client.post(f"/api/v1/resources/{RESOURCE_TYPE}", json={"spec": SPEC})

        assert response.status_code == 201
        body = response.json()
        assert body["resource_id"] == TARGET_GROUP_ARN
        assert body["state"] == STATE
        provider.create.assert_awaited_once_with(RESOURCE_TYPE, SPEC)

    def test_create_unknown_type(self, client, provider):
        response = client.post("/api/v1/resources/aws_nothing", json={"spec": {}})

        assert response.status_code == 404
        assert "Unknown resource type" in response.json()["detail"]
        provider.create.assert_not_called()

    def test_create_validation_error(self, client, provider):
        provider.create.side_effect = ValidationError("invalid spec")

        response = client.post(f"/api/v1/resources/{RESOURCE_TYPE}", json={"spec": {}})

        assert response.status_code == 422
        assert response.json()["detail"] == "invalid spec"

    def test_create_remote_error(self, client, provider):
        provider.create.side_effect = RemoteError(
            "ELBv2",
            "creating",
            "Target Group Registration",
            TARGET_GROUP_ARN,
            client_error("AccessDenied"),
        )

        response = client.post(f"/api/v1/resources/{RESOURCE_TYPE}", json={"spec": SPEC})

        assert response.status_code == 502
        assert response.json()["detail"].startswith("creating ELBv2")

    def test_create_oversized_spec(self, client, provider):
        spec = {"blob": "x" * (MAX_SPEC_SIZE + 1)}

        response = client.post(f"/api/v1/resources/{RESOURCE_TYPE}", json={"spec": spec})

        assert response.status_code == 422
        provider.create.assert_not_called()

    def test_get_with_refresh(self, client, provider):
        """Test ids containing slashes reach the provider intact."""
        provider.read.return_value = STATE

        response = client.get(f"/api/v1/resources/{RESOURCE_TYPE}/{TARGET_GROUP_ARN}")

        assert response.status_code == 200
        provider.read.assert_awaited_once_with(RESOURCE_TYPE, TARGET_GROUP_ARN)

    def test_get_removed(self, client, provider):
        provider.read.return_value = None

        response = client.get(f"/api/v1/resources/{RESOURCE_TYPE}/{TARGET_GROUP_ARN}")

        assert response.status_code == 404
        assert "removed from state" in response.json()["detail"]

    def test_get_without_refresh(self, client, provider):
        provider.db.get_state.return_value = {
            "resource_type": RESOURCE_TYPE,
            "resource_id": TARGET_GROUP_ARN,
            "spec": SPEC,
            "state": STATE,
            "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "updated_at": None,
        }

        response = client.get(
            f"/api/v1/resources/{RESOURCE_TYPE}/{TARGET_GROUP_ARN}", params={"refresh": "false"}
        )

        assert response.status_code == 200
        assert response.json()["spec"] == SPEC
        provider.read.assert_not_called()

    def test_get_unmanaged(self, client, provider):
        provider.read.side_effect = NotFoundError("not managed")

        response = client.get(f"/api/v1/resources/{RESOURCE_TYPE}/nope")

        assert response.status_code == 404

    def test_update(self, client, provider):
        provider.update.return_value = STATE

        response = client.put(
            f"/api/v1/resources/{RESOURCE_TYPE}/{TARGET_GROUP_ARN}", json={"spec": SPEC}
        )

        assert response.status_code == 200
        provider.update.assert_awaited_once_with(RESOURCE_TYPE, TARGET_GROUP_ARN, SPEC)

    def test_delete(self, client, provider):
        response = client.delete(f"/api/v1/resources/{RESOURCE_TYPE}/{TARGET_GROUP_ARN}")

        assert response.status_code == 204
        provider.delete.assert_awaited_once_with(RESOURCE_TYPE, TARGET_GROUP_ARN)

    def test_import(self, client, provider):
        provider.import_resource.return_value = STATE

        response = client.post(
            f"/api/v1/resources/{RESOURCE_TYPE}/import", json={"id": TARGET_GROUP_ARN}
        )

        assert response.status_code == 201
        provider.import_resource.assert_awaited_once_with(RESOURCE_TYPE, TARGET_GROUP_ARN)

    def test_import_empty_id(self, client, provider):
        response = client.post(f"/api/v1/resources/{RESOURCE_TYPE}/import", json={"id": ""})

        assert response.status_code == 422

    def test_list_resources(self, client, provider):
        provider.list_resources.return_value = [
            {
                "resource_type": RESOURCE_TYPE,
                "resource_id": TARGET_GROUP_ARN,
                "spec": SPEC,
                "state": STATE,
            }
        ]

        response = client.get(f"/api/v1/resources/{RESOURCE_TYPE}", params={"limit": 5})

        assert response.status_code == 200
        assert len(response.json()) == 1
        provider.list_resources.assert_awaited_once_with(RESOURCE_TYPE, limit=5)

    def test_list_unknown_type(self, client, provider):
        provider.list_resources.side_effect = UnknownResourceTypeError("Unknown resource type: x")

        assert client.get("/api/v1/resources/x").status_code == 404

    def test_history(self, client, provider):
        provider.history.return_value = [
            {
                "id": 1,
                "resource_type": RESOURCE_TYPE,
                "resource_id": TARGET_GROUP_ARN,
                "operation": "create",
                "success": True,
                "error_message": None,
                "duration_seconds": 0.4,
                "drift_detected": False,
                "operation_time": datetime(2024, 1, 1, tzinfo=timezone.utc),
            }
        ]

        response = client.get(f"/api/v1/history/{RESOURCE_TYPE}/{TARGET_GROUP_ARN}")

        assert response.status_code == 200
        assert response.json()[0]["operation"] == "create"
        provider.history.assert_awaited_once_with(RESOURCE_TYPE, TARGET_GROUP_ARN, limit=10)

    def test_list_input_plugins(self, client):
        assert client.get("/api/v1/plugins/inputs").json() == [
            {"name": "http", "version": "1.0.0"}
        ]

    def test_events_unavailable(self, client):
        assert client.get("/api/v1/events").status_code == 503

    def test_events_unknown_event_type(self, plugin, client):
        plugin.set_event_bus(EventBus())

        response = client.get("/api/v1/events", params={"event_type": "EXPLODED"})

        assert response.status_code == 422
        assert "DRIFTED" in response.json()["detail"]


class TestParseEventTypes:
    """Tests for parse_event_types()."""

    def test_none(self):
        assert parse_event_types(None) is None
        assert parse_event_types([]) is None

    def test_case_insensitive(self):
        assert parse_event_types(["drifted", "REMOVED"]) == frozenset(
            {EventType.DRIFTED, EventType.REMOVED}
        )
