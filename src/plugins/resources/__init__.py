"""
Resource plugins package.

Resource plugins own the schema and lifecycle of one resource type each.
Third-party plugins are discovered via Python entry points
(group: 'awsprov.resources').
"""

from plugins.resources.base import ResourcePlugin

__all__ = ["ResourcePlugin"]
