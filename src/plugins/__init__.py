"""
Plugin system for the AWS resource provider.

This package provides the plugin architecture for extensible resource
types and inputs.
"""

from plugins.base import OperationRecord, OperationType, ResourceContext
from plugins.registry import PluginRegistry, get_registry
from plugins.resources.base import ResourcePlugin

__all__ = [
    "OperationRecord",
    "OperationType",
    "ResourceContext",
    "ResourcePlugin",
    "PluginRegistry",
    "get_registry",
]
