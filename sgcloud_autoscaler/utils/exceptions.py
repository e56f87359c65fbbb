"""
Custom exceptions for the sgcloud autoscaler.
"""

from typing import Optional


class SgCloudError(Exception):
    """Base exception for all sgcloud autoscaler errors."""

    pass


class ConfigurationError(SgCloudError):
    """Exception raised for configuration errors. Fatal at startup."""

    pass


class CommunicationError(SgCloudError):
    """Exception raised when talking to the remote API failed."""

    pass


class TransportError(CommunicationError):
    """Network-level failure: connection refused, timeout, DNS."""

    def __init__(self, message: str, method: str = "", url: str = "") -> None:
        super().__init__(message)
        self.method = method
        self.url = url


class APIError(CommunicationError):
    """The remote API answered with an HTTP status of 400 or above."""

    def __init__(
        self, status_code: int, body: str, method: str = "", url: str = ""
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.method = method
        self.url = url
        super().__init__(
            f"{method} {url} failed with status {status_code}: {body[:500]}"
        )

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409

    @property
    def is_bad_request(self) -> bool:
        return self.status_code == 400


class ServerError(APIError):
    """HTTP 5xx answer."""

    pass


class ClientError(APIError):
    """HTTP 4xx answer. Never retried."""

    pass


class ResponseDecodeError(CommunicationError):
    """A successful response whose body could not be decoded."""

    def __init__(self, message: str, body: str = "") -> None:
        super().__init__(message)
        self.body = body


class OperationFailedError(CommunicationError):
    """A successful HTTP exchange whose envelope reports ``success: false``."""

    def __init__(self, operation: str, code: Optional[int], message: str) -> None:
        self.operation = operation
        self.code = code
        self.message = message
        super().__init__(f"{operation} rejected by remote API (code={code}): {message}")


class InvariantViolation(SgCloudError):
    """A scale request would break a group size or membership invariant."""

    pass


class GroupNotFoundError(SgCloudError):
    """An instance id is not owned by any registered group."""

    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        super().__init__(f"instance {instance_id} does not belong to a known group")


class NotImplementedByProvider(SgCloudError):
    """The requested operation is not supported by this provider."""

    pass


class UnknownGroupError(SgCloudError):
    """A group id that was never registered."""

    def __init__(self, group_id: str) -> None:
        self.group_id = group_id
        super().__init__(f"unknown group {group_id}")
