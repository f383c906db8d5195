"""
AWS client layer.

Holds the boto3 session for the provider and a per-service client cache.
boto3 is blocking, so every call is pushed to a worker thread to keep the
event loop free. Retry and timeout policy for individual HTTP requests is
left to botocore.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config as BotocoreConfig
from botocore.exceptions import ClientError

from config import AWSConfig

logger = logging.getLogger(__name__)


class AWSClient:
    """Lazily created boto3 session with cached service clients."""

    def __init__(self, config: Optional[AWSConfig] = None, session: Any = None):
        self.config = config or AWSConfig()
        self._session = session
        self._clients: Dict[str, Any] = {}

    @property
    def region(self) -> str:
        return self.config.region

    @property
    def session(self) -> Any:
        if self._session is None:
            self._session = boto3.Session(
                profile_name=self.config.profile,
                aws_access_key_id=self.config.access_key_id,
                aws_secret_access_key=self.config.secret_access_key,
                region_name=self.config.region,
            )
            logger.info(f"AWS session initialized for region: {self.config.region}")
        return self._session

    def client(self, service: str) -> Any:
        """Get or create a boto3 client for the given service."""
        if service not in self._clients:
            self._clients[service] = self.session.client(
                service,
                region_name=self.config.region,
                endpoint_url=self.config.endpoint_url,
                config=BotocoreConfig(
                    retries={
                        "max_attempts": self.config.max_attempts,
                        "mode": "standard",
                    }
                ),
            )
        return self._clients[service]

    async def call(self, service: str, operation: str, **params: Any) -> Dict[str, Any]:
        """
        Invoke a boto3 operation without blocking the event loop.

        Args:
            service: boto3 service name (e.g. 'elbv2')
            operation: snake_case operation name (e.g. 'register_targets')
            **params: Operation parameters

        Returns:
            The raw response dict.

        Raises:
            botocore.exceptions.ClientError: If the API rejects the request
        """
        method = getattr(self.client(service), operation)
        logger.debug(f"Calling {service}.{operation}")
        return await asyncio.to_thread(method, **params)


def error_code(err: Optional[BaseException]) -> Optional[str]:
    """Return the AWS error code of a ClientError, or None."""
    if isinstance(err, ClientError):
        return err.response.get("Error", {}).get("Code")
    return None


def error_message(err: Optional[BaseException]) -> str:
    """Return the AWS error message of a ClientError, or an empty string."""
    if isinstance(err, ClientError):
        return err.response.get("Error", {}).get("Message", "")
    return ""


def error_code_equals(err: Optional[BaseException], *codes: str) -> bool:
    """Check whether an error is a ClientError with one of the given codes."""
    code = error_code(err)
    return code is not None and code in codes


def error_message_contains(
    err: Optional[BaseException], code: str, needle: str
) -> bool:
    """Check whether an error has the given code and its message contains needle."""
    return error_code_equals(err, code) and needle in error_message(err)
