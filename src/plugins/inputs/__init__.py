"""
Input plugins package.

Input plugins expose the provider's lifecycle operations to callers
(HTTP API, etc.)
"""

from plugins.inputs.base import InputPlugin

__all__ = ["InputPlugin"]
