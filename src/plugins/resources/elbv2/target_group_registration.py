"""
Target Group Registration - Manages the set of targets registered with an
Elastic Load Balancing v2 target group.

The target group itself is owned elsewhere; this resource only owns
membership. Its id is the target group ARN, so import takes the ARN and
reads every registered target.
"""

import logging
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from aws import AWSClient, error_code_equals
from errors import (
    ACTION_CREATING,
    ACTION_DELETING,
    ACTION_READING,
    ACTION_UPDATING,
    NotFoundError,
    RemoteError,
)
from membership import (
    Attr,
    Member,
    MembershipRegistry,
    MembershipSet,
    SetReconciler,
    finalize_computed,
    resolve_computed,
)
from plugins.base import ResourceContext
from plugins.resources.base import ResourcePlugin
from retry import retry_on_codes

logger = logging.getLogger(__name__)

SERVICE = "ELBv2"
RESOURCE_NAME = "Target Group Registration"

ERR_TARGET_GROUP_NOT_FOUND = "TargetGroupNotFound"
ERR_INVALID_TARGET = "InvalidTarget"

# A freshly launched instance is rejected until it is running
CREATE_RETRY_CODES = (ERR_INVALID_TARGET,)

# Health reason reported for targets named in a scoped query but not registered
REASON_NOT_REGISTERED = "Target.NotRegistered"

TARGET_SCHEMA = {
    "type": "object",
    "required": ["target_id"],
    "additionalProperties": False,
    "properties": {
        "target_id": {"type": "string", "minLength": 1},
        "availability_zone": {"type": ["string", "null"]},
        "port": {"type": ["integer", "null"], "minimum": 1, "maximum": 65535},
    },
}

SPEC_SCHEMA = {
    "type": "object",
    "required": ["target_group_arn"],
    "additionalProperties": False,
    "properties": {
        "target_group_arn": {"type": "string", "minLength": 1},
        "target": {"type": "array", "items": TARGET_SCHEMA},
    },
}


def expand_targets(members: List[Member]) -> List[Dict[str, Any]]:
    """Build the Targets parameter of the ELBv2 API from members."""
    targets = []
    for member in members:
        item: Dict[str, Any] = {"Id": member.target_id}
        if member.availability_zone.is_set:
            item["AvailabilityZone"] = member.availability_zone.value
        if member.port.is_set:
            item["Port"] = member.port.value
        targets.append(item)
    return targets


def flatten_targets(descriptions: List[Optional[Dict[str, Any]]]) -> List[Member]:
    """Build members from TargetHealthDescriptions, skipping unregistered ones."""
    members = []
    for description in descriptions:
        if not description or not description.get("Target"):
            continue
        health = description.get("TargetHealth") or {}
        if health.get("Reason") == REASON_NOT_REGISTERED:
            continue

        target = description["Target"]
        members.append(
            Member(
                target_id=target["Id"],
                availability_zone=Attr.of(target.get("AvailabilityZone")),
                port=Attr.of(target.get("Port")),
            )
        )
    return members


class TargetGroupRegistry(MembershipRegistry):
    """MembershipRegistry backed by the ELBv2 target registration API."""

    def __init__(self, aws: AWSClient):
        self.aws = aws

    async def add_members(self, group: str, members: List[Member]) -> None:
        await self._call(
            "register_targets",
            TargetGroupArn=group,
            Targets=expand_targets(members),
        )

    async def remove_members(self, group: str, members: List[Member]) -> None:
        await self._call(
            "deregister_targets",
            TargetGroupArn=group,
            Targets=expand_targets(members),
        )

    async def describe_members(
        self, group: str, scope: Optional[List[Member]] = None
    ) -> Optional[List[Member]]:
        params: Dict[str, Any] = {"TargetGroupArn": group}
        if scope:
            params["Targets"] = expand_targets(scope)

        out = await self._call("describe_target_health", **params)
        if out is None or out.get("TargetHealthDescriptions") is None:
            return None

        return flatten_targets(out["TargetHealthDescriptions"])

    async def _call(self, operation: str, **params: Any) -> Optional[Dict[str, Any]]:
        try:
            return await self.aws.call("elbv2", operation, **params)
        except ClientError as e:
            if error_code_equals(e, ERR_TARGET_GROUP_NOT_FOUND):
                raise NotFoundError(
                    f"target group {params.get('TargetGroupArn')} not found",
                    last_error=e,
                ) from e
            raise


class TargetGroupRegistrationPlugin(ResourcePlugin):
    """Resource plugin for aws_lb_target_group_registration."""

    @property
    def name(self) -> str:
        return "aws_lb_target_group_registration"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def schema(self) -> Dict[str, Any]:
        return SPEC_SCHEMA

    @property
    def requires_replace(self) -> List[str]:
        return ["target_group_arn"]

    def validate_spec(self, spec: Dict[str, Any]) -> None:
        super().validate_spec(spec)
        # Conflicting duplicates only show up once the list is keyed by id
        MembershipSet.from_dicts(spec.get("target"))

    def _reconciler(self, ctx: ResourceContext) -> SetReconciler:
        return SetReconciler(TargetGroupRegistry(ctx.aws))

    async def create(self, spec: Dict[str, Any], ctx: ResourceContext) -> Dict[str, Any]:
        group = spec["target_group_arn"]
        desired = MembershipSet.from_dicts(spec.get("target"))
        reconciler = self._reconciler(ctx)

        try:
            await retry_on_codes(
                lambda: reconciler.apply(group, [], desired.members()),
                CREATE_RETRY_CODES,
                timeout=ctx.retry.create_timeout,
                min_delay=ctx.retry.min_delay,
                max_delay=ctx.retry.max_delay,
            )
        except (ClientError, NotFoundError) as e:
            raise RemoteError(SERVICE, ACTION_CREATING, RESOURCE_NAME, group, e) from e

        logger.info(f"Registered {len(desired)} target(s) with {group}")
        targets = await self._settle(reconciler, group, desired, ACTION_CREATING)
        return self._state(group, targets)

    async def read(
        self, state: Dict[str, Any], ctx: ResourceContext
    ) -> Optional[Dict[str, Any]]:
        group = state.get("target_group_arn") or state["id"]
        prior = MembershipSet.from_dicts(state.get("target"), computed_port=False)

        try:
            observed = await self._reconciler(ctx).describe(group, prior.members())
        except NotFoundError:
            logger.warning(f"Target group {group} not found, removing from state")
            return None
        except ClientError as e:
            raise RemoteError(SERVICE, ACTION_READING, RESOURCE_NAME, group, e) from e

        return self._state(group, observed)

    async def update(
        self,
        spec: Dict[str, Any],
        prior_state: Dict[str, Any],
        ctx: ResourceContext,
    ) -> Dict[str, Any]:
        group = spec["target_group_arn"]
        prior = MembershipSet.from_dicts(prior_state.get("target"), computed_port=False)
        planned = resolve_computed(MembershipSet.from_dicts(spec.get("target")), prior)
        reconciler = self._reconciler(ctx)

        try:
            result = await reconciler.reconcile(group, planned, prior)
        except (ClientError, NotFoundError) as e:
            raise RemoteError(SERVICE, ACTION_UPDATING, RESOURCE_NAME, group, e) from e

        if not result.group_found:
            # The next read drops the resource
            return self._state(group, finalize_computed(planned, MembershipSet()))

        targets = await self._settle(reconciler, group, planned, ACTION_UPDATING)
        return self._state(group, targets)

    async def delete(self, state: Dict[str, Any], ctx: ResourceContext) -> None:
        group = state.get("target_group_arn") or state["id"]
        observed = MembershipSet.from_dicts(state.get("target"), computed_port=False)

        try:
            result = await self._reconciler(ctx).apply(group, observed.members(), [])
        except ClientError as e:
            raise RemoteError(SERVICE, ACTION_DELETING, RESOURCE_NAME, group, e) from e

        if result.group_found:
            logger.info(f"Deregistered {result.removed} target(s) from {group}")

    async def import_state(
        self, resource_id: str, ctx: ResourceContext
    ) -> Optional[Dict[str, Any]]:
        return await self.read(
            {"id": resource_id, "target_group_arn": resource_id, "target": []}, ctx
        )

    async def _settle(
        self,
        reconciler: SetReconciler,
        group: str,
        planned: MembershipSet,
        action: str,
    ) -> MembershipSet:
        """Resolve ports left for the load balancer to assign."""
        pending = [m for m in planned if m.port.is_unknown]
        if not pending:
            return planned

        try:
            observed = await reconciler.describe(group, pending)
        except (ClientError, NotFoundError) as e:
            raise RemoteError(SERVICE, action, RESOURCE_NAME, group, e) from e

        return finalize_computed(planned, observed)

    @staticmethod
    def _state(group: str, targets: MembershipSet) -> Dict[str, Any]:
        return {
            "id": group,
            "target_group_arn": group,
            "target": targets.to_dicts(),
        }
