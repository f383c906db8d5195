"""
Custom Data Identifier - Amazon Macie custom data identifiers.

Every attribute forces replacement, so there is no in-place update.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from aws import error_code_equals, error_message_contains
from errors import (
    ACTION_CREATING,
    ACTION_DELETING,
    ACTION_READING,
    RemoteError,
    ValidationError,
)
from naming import UNIQUE_ID_SUFFIX_LENGTH, generate_name, prefix_from_name, unique_id
from plugins.base import ResourceContext
from plugins.resources.base import ResourcePlugin
from retry import retry_on_codes

logger = logging.getLogger(__name__)

SERVICE = "Macie"
RESOURCE_NAME = "Custom Data Identifier"

ERR_CLIENT_ERROR = "ClientError"
ERR_RESOURCE_NOT_FOUND = "ResourceNotFoundException"
ERR_ACCESS_DENIED = "AccessDeniedException"
MSG_MACIE_NOT_ENABLED = "Macie is not enabled"

MAX_NAME_LENGTH = 128

SPEC_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "regex": {"type": "string", "maxLength": 512},
        "keywords": {
            "type": "array",
            "minItems": 1,
            "maxItems": 50,
            "uniqueItems": True,
            "items": {"type": "string", "minLength": 3, "maxLength": 90},
        },
        "ignore_words": {
            "type": "array",
            "minItems": 1,
            "maxItems": 10,
            "uniqueItems": True,
            "items": {"type": "string", "minLength": 4, "maxLength": 90},
        },
        "name": {"type": "string", "maxLength": MAX_NAME_LENGTH},
        "name_prefix": {
            "type": "string",
            "maxLength": MAX_NAME_LENGTH - UNIQUE_ID_SUFFIX_LENGTH,
        },
        "description": {"type": "string", "maxLength": 512},
        "maximum_match_distance": {"type": "integer", "minimum": 1, "maximum": 300},
        "tags": {"type": "object", "additionalProperties": {"type": "string"}},
    },
}


def is_not_found(err: Exception) -> bool:
    """Macie reports a disabled account the same way as a missing identifier."""
    return error_code_equals(err, ERR_RESOURCE_NOT_FOUND) or error_message_contains(
        err, ERR_ACCESS_DENIED, MSG_MACIE_NOT_ENABLED
    )


def format_timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return str(value)


class CustomDataIdentifierPlugin(ResourcePlugin):
    """Resource plugin for aws_macie2_custom_data_identifier."""

    @property
    def name(self) -> str:
        return "aws_macie2_custom_data_identifier"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def schema(self) -> Dict[str, Any]:
        return SPEC_SCHEMA

    @property
    def requires_replace(self) -> List[str]:
        return list(SPEC_SCHEMA["properties"])

    @property
    def computed(self) -> List[str]:
        return ["name", "name_prefix", "maximum_match_distance"]

    def validate_spec(self, spec: Dict[str, Any]) -> None:
        super().validate_spec(spec)
        if spec.get("name") and spec.get("name_prefix"):
            raise ValidationError('"name" conflicts with "name_prefix"')

    async def create(self, spec: Dict[str, Any], ctx: ResourceContext) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "clientToken": unique_id(),
            "name": generate_name(spec.get("name"), spec.get("name_prefix")),
        }
        if spec.get("regex"):
            params["regex"] = spec["regex"]
        if spec.get("keywords"):
            params["keywords"] = list(spec["keywords"])
        if spec.get("ignore_words"):
            params["ignoreWords"] = list(spec["ignore_words"])
        if spec.get("description"):
            params["description"] = spec["description"]
        if spec.get("maximum_match_distance"):
            params["maximumMatchDistance"] = spec["maximum_match_distance"]
        if spec.get("tags"):
            params["tags"] = dict(spec["tags"])

        try:
            output = await retry_on_codes(
                lambda: ctx.aws.call(
                    "macie2", "create_custom_data_identifier", **params
                ),
                (ERR_CLIENT_ERROR,),
                timeout=ctx.retry.create_timeout,
                min_delay=ctx.retry.min_delay,
                max_delay=ctx.retry.max_delay,
            )
        except ClientError as e:
            raise RemoteError(
                SERVICE, ACTION_CREATING, RESOURCE_NAME, params["name"], e
            ) from e

        identifier_id = output["customDataIdentifierId"]
        logger.info(f"Created Macie custom data identifier {identifier_id}")

        return await self._read(identifier_id, ctx, is_new=True)

    async def read(
        self, state: Dict[str, Any], ctx: ResourceContext
    ) -> Optional[Dict[str, Any]]:
        return await self._read(state["id"], ctx, is_new=False)

    async def update(
        self,
        spec: Dict[str, Any],
        prior_state: Dict[str, Any],
        ctx: ResourceContext,
    ) -> Dict[str, Any]:
        # Nothing can change in place
        return dict(prior_state)

    async def delete(self, state: Dict[str, Any], ctx: ResourceContext) -> None:
        try:
            await ctx.aws.call("macie2", "delete_custom_data_identifier", id=state["id"])
        except ClientError as e:
            if is_not_found(e):
                return
            raise RemoteError(
                SERVICE, ACTION_DELETING, RESOURCE_NAME, state["id"], e
            ) from e

        logger.info(f"Deleted Macie custom data identifier {state['id']}")

    async def _read(
        self, identifier_id: str, ctx: ResourceContext, is_new: bool
    ) -> Optional[Dict[str, Any]]:
        try:
            resp = await ctx.aws.call(
                "macie2", "get_custom_data_identifier", id=identifier_id
            )
        except ClientError as e:
            if not is_new and is_not_found(e):
                logger.warning(
                    f"Macie CustomDataIdentifier ({identifier_id}) not found, "
                    f"removing from state"
                )
                return None
            raise RemoteError(
                SERVICE, ACTION_READING, RESOURCE_NAME, identifier_id, e
            ) from e

        if resp.get("deleted"):
            logger.warning(
                f"Macie CustomDataIdentifier ({identifier_id}) is soft deleted, "
                f"removing from state"
            )
            return None

        name = resp.get("name")
        return {
            "id": identifier_id,
            "arn": resp.get("arn"),
            "created_at": format_timestamp(resp.get("createdAt")),
            "regex": resp.get("regex"),
            "keywords": sorted(resp.get("keywords") or []),
            "ignore_words": sorted(resp.get("ignoreWords") or []),
            "name": name,
            "name_prefix": prefix_from_name(name),
            "description": resp.get("description"),
            "maximum_match_distance": resp.get("maximumMatchDistance"),
            "tags": resp.get("tags") or {},
        }
