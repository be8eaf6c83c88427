"""
Error taxonomy for provider operations.

Lookup helpers raise ``NotFoundError``/``EmptyResultError``; lifecycle
operations wrap whatever went wrong in one of the ``ResourceError`` subclasses
so that diagnostics always carry the action, resource type and identifier.
"""

from typing import Any, Optional

from botocore.exceptions import ClientError

ERR_CODE_RESOURCE_NOT_FOUND = "ResourceNotFoundException"

ACTION_CREATING = "creating"
ACTION_READING = "reading"
ACTION_DELETING = "deleting"
ACTION_WAITING_FOR_CREATION = "waiting for creation"
ACTION_WAITING_FOR_DELETION = "waiting for delete"


class NotFoundError(Exception):
    """The remote object does not exist (or is not visible yet)."""

    def __init__(
        self,
        message: Optional[str] = None,
        last_error: Optional[Exception] = None,
        last_request: Optional[Any] = None,
    ):
        self.last_error = last_error
        self.last_request = last_request
        if message is None:
            message = str(last_error) if last_error is not None else "couldn't find resource"
        super().__init__(message)


class EmptyResultError(NotFoundError):
    """The remote call succeeded but returned no payload."""

    def __init__(self, last_request: Optional[Any] = None):
        super().__init__("empty result", last_request=last_request)


def is_not_found(err: Optional[BaseException]) -> bool:
    """Whether ``err`` means the looked-up object is absent."""
    return isinstance(err, NotFoundError)


def is_aws_error_code(err: Optional[BaseException], code: str) -> bool:
    """Whether ``err`` is a botocore ClientError with the given error code."""
    if not isinstance(err, ClientError):
        return False
    return err.response.get("Error", {}).get("Code") == code


def is_resource_not_found_exception(err: Optional[BaseException]) -> bool:
    return is_aws_error_code(err, ERR_CODE_RESOURCE_NOT_FOUND)


class ResourceError(Exception):
    """A lifecycle operation on a resource failed."""

    action = ""

    def __init__(
        self,
        service: str,
        resource_name: str,
        identifier: str,
        cause: Exception,
        action: Optional[str] = None,
    ):
        self.service = service
        self.resource_name = resource_name
        self.identifier = identifier
        self.cause = cause
        if action is not None:
            self.action = action
        super().__init__(f"{self.action} {service} {resource_name} ({identifier}): {cause}")


class CreateError(ResourceError):
    action = ACTION_CREATING


class ReadError(ResourceError):
    action = ACTION_READING


class DeleteError(ResourceError):
    action = ACTION_DELETING


class WaitError(ResourceError):
    """Polling for a target status timed out, was cancelled, or its fetch failed."""

    action = ACTION_WAITING_FOR_CREATION
