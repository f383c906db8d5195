"""
Core plugin types and dataclasses.

This module contains shared types used across the plugin system.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
import logging

from aws import AWSClient
from config import RetryConfig

logger = logging.getLogger(__name__)


class OperationType(Enum):
    """Lifecycle operations a resource plugin implements."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


@dataclass
class ResourceContext:
    """
    Context passed to resource plugins on every lifecycle call.

    Carries the AWS connection and retry settings explicitly so plugins
    never reach for global state.
    """

    resource_type: str
    aws: AWSClient
    retry: RetryConfig = field(default_factory=RetryConfig)
    plugin_config: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OperationRecord:
    """One entry of a resource's operation history."""

    resource_type: str
    resource_id: Optional[str]
    operation: OperationType
    success: bool = False
    error_message: Optional[str] = None
    duration_seconds: Optional[float] = None
    drift_detected: bool = False
