"""Elastic Load Balancing v2 resources."""

from plugins.resources.elbv2.target_group_registration import (
    TargetGroupRegistrationPlugin,
    TargetGroupRegistry,
)

__all__ = ["TargetGroupRegistrationPlugin", "TargetGroupRegistry"]
