"""
Provider errors.

Every lifecycle operation either succeeds or raises one of these. NotFound
is the only one resource plugins recover from locally; the rest surface to
the caller with the resource identifier and the attempted action attached.
"""

from typing import Any, Optional

# Action verbs used in error messages
ACTION_CREATING = "creating"
ACTION_READING = "reading"
ACTION_UPDATING = "updating"
ACTION_DELETING = "deleting"


class ProviderError(Exception):
    """Base class for all provider errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ProviderError):
    """Raised when desired state is malformed. No remote call has been made."""


class NotFoundError(ProviderError):
    """Raised when the remote object backing a resource no longer exists."""

    def __init__(self, message: str, last_error: Optional[Exception] = None):
        self.last_error = last_error
        super().__init__(message)


class EmptyResultError(ProviderError):
    """
    Raised when a describe call returned no payload at all.

    This is different from a payload holding an empty list, which means
    zero members.
    """

    def __init__(self, last_request: Any = None):
        self.last_request = last_request
        super().__init__(f"empty result (request: {last_request})")


class RemoteError(ProviderError):
    """A failed remote call, annotated with what was being attempted."""

    def __init__(
        self,
        service: str,
        action: str,
        resource_name: str,
        identifier: str,
        cause: Exception,
    ):
        self.service = service
        self.action = action
        self.resource_name = resource_name
        self.identifier = identifier
        self.cause = cause
        super().__init__(
            problem_message(service, action, resource_name, identifier, cause)
        )


class UnknownResourceTypeError(ValueError):
    """Raised when no resource plugin is registered for a type name."""


def problem_message(
    service: str,
    action: str,
    resource_name: str,
    identifier: str,
    cause: Exception,
) -> str:
    """
    Build the standard error message for a failed operation.

    Example: ``creating ELBv2 Target Group Registration (arn:...): boom``
    """
    if identifier:
        return f"{action} {service} {resource_name} ({identifier}): {cause}"
    return f"{action} {service} {resource_name}: {cause}"
