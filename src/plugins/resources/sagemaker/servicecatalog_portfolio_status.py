"""
Service Catalog Portfolio Status - Enables or disables the SageMaker
Service Catalog portfolio for the configured region.

There is one such setting per region, so the region is the id. Deleting the
resource only stops managing the setting; the portfolio keeps its status.
"""

import logging
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from errors import ACTION_CREATING, ACTION_READING, ACTION_UPDATING, RemoteError
from plugins.base import ResourceContext
from plugins.resources.base import ResourcePlugin

logger = logging.getLogger(__name__)

SERVICE = "SageMaker"
RESOURCE_NAME = "Servicecatalog Portfolio Status"

STATUS_ENABLED = "Enabled"
STATUS_DISABLED = "Disabled"

SPEC_SCHEMA = {
    "type": "object",
    "required": ["status"],
    "additionalProperties": False,
    "properties": {
        "status": {"type": "string", "enum": [STATUS_ENABLED, STATUS_DISABLED]},
    },
}


class ServicecatalogPortfolioStatusPlugin(ResourcePlugin):
    """Resource plugin for aws_sagemaker_servicecatalog_portfolio_status."""

    @property
    def name(self) -> str:
        return "aws_sagemaker_servicecatalog_portfolio_status"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def schema(self) -> Dict[str, Any]:
        return SPEC_SCHEMA

    async def create(self, spec: Dict[str, Any], ctx: ResourceContext) -> Dict[str, Any]:
        region = ctx.aws.region
        await self._set_status(spec["status"], region, ctx, ACTION_CREATING)
        return await self._read(region, ctx)

    async def read(
        self, state: Dict[str, Any], ctx: ResourceContext
    ) -> Optional[Dict[str, Any]]:
        return await self._read(state["id"], ctx)

    async def update(
        self,
        spec: Dict[str, Any],
        prior_state: Dict[str, Any],
        ctx: ResourceContext,
    ) -> Dict[str, Any]:
        await self._set_status(spec["status"], prior_state["id"], ctx, ACTION_UPDATING)
        return await self._read(prior_state["id"], ctx)

    async def delete(self, state: Dict[str, Any], ctx: ResourceContext) -> None:
        logger.info(
            f"Removing SageMaker portfolio status for {state['id']} from state; "
            f"remote status is left unchanged"
        )

    async def _set_status(
        self, status: str, region: str, ctx: ResourceContext, action: str
    ) -> None:
        if status == STATUS_ENABLED:
            operation = "enable_sagemaker_servicecatalog_portfolio"
        else:
            operation = "disable_sagemaker_servicecatalog_portfolio"

        try:
            await ctx.aws.call("sagemaker", operation)
        except ClientError as e:
            raise RemoteError(SERVICE, action, RESOURCE_NAME, region, e) from e

        logger.info(f"Set SageMaker Service Catalog portfolio status to {status}")

    async def _read(self, region: str, ctx: ResourceContext) -> Dict[str, Any]:
        try:
            resp = await ctx.aws.call(
                "sagemaker", "get_sagemaker_servicecatalog_portfolio_status"
            )
        except ClientError as e:
            raise RemoteError(SERVICE, ACTION_READING, RESOURCE_NAME, region, e) from e

        return {"id": region, "status": resp.get("Status")}
