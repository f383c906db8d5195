"""Pytest configuration and fixtures."""

from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from config import RetryConfig
from errors import NotFoundError
from membership import Member, MembershipRegistry
from plugins.base import ResourceContext

TARGET_GROUP_ARN = (
    "arn:aws:elasticloadbalancing:us-east-1:123456789012:targetgroup/web/0123456789abcdef"
)


def client_error(code: str, message: str = "", operation: str = "Operation") -> ClientError:
    """Build a botocore ClientError carrying an AWS error code."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeRegistry(MembershipRegistry):
    """
    In-memory registry that mirrors mutations exactly.

    Records every call in order so tests can assert on sequencing.
    """

    def __init__(self, groups: Optional[Dict[str, Dict[str, Member]]] = None):
        self.groups: Dict[str, Dict[str, Member]] = groups or {}
        self.calls: List[tuple] = []

    def _group(self, group: str) -> Dict[str, Member]:
        if group not in self.groups:
            raise NotFoundError(f"group {group} not found")
        return self.groups[group]

    async def add_members(self, group, members):
        self.calls.append(("add", group, [m.key for m in members]))
        registered = self._group(group)
        for member in members:
            registered[member.key] = member

    async def remove_members(self, group, members):
        self.calls.append(("remove", group, [m.key for m in members]))
        registered = self._group(group)
        for member in members:
            registered.pop(member.key, None)

    async def describe_members(self, group, scope=None):
        self.calls.append(("describe", group, [m.key for m in scope or []]))
        registered = self._group(group)
        if scope:
            return [registered[m.key] for m in scope if m.key in registered]
        return list(registered.values())


@pytest.fixture
def fake_registry():
    """An in-memory registry with one empty group."""
    return FakeRegistry({"group-1": {}})


@pytest.fixture
def mock_aws():
    """An AWSClient stand-in whose call() is an AsyncMock."""
    aws = MagicMock()
    aws.call = AsyncMock()
    aws.region = "us-east-1"
    return aws


@pytest.fixture
def fast_retry():
    """Retry settings that make create retries finish immediately."""
    return RetryConfig(create_timeout=0.05, min_delay=0.0, max_delay=0.0)


@pytest.fixture
def resource_ctx(mock_aws, fast_retry):
    """A resource context backed by the mocked AWS client."""
    return ResourceContext(
        resource_type="test",
        aws=mock_aws,
        retry=fast_retry,
    )


@pytest.fixture
def mock_pool():
    """Create a mock asyncpg pool."""
    pool = AsyncMock()
    pool.acquire = MagicMock()
    return pool


@pytest.fixture
def mock_connection():
    """Create a mock asyncpg connection."""
    conn = AsyncMock()
    return conn


@pytest.fixture
def sample_state_row():
    """Sample resource_states row as returned by asyncpg."""
    return {
        "id": 1,
        "resource_type": "aws_lb_target_group_registration",
        "resource_id": TARGET_GROUP_ARN,
        "spec": '{"target_group_arn": "%s", "target": [{"target_id": "i-1"}]}'
        % TARGET_GROUP_ARN,
        "state": '{"id": "%s", "target_group_arn": "%s", "target": '
        '[{"target_id": "i-1", "availability_zone": null, "port": 80}]}'
        % (TARGET_GROUP_ARN, TARGET_GROUP_ARN),
        "spec_hash": "abc123",
        "created_at": None,
        "updated_at": None,
    }
