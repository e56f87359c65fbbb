"""
Utility modules for the sgcloud autoscaler.
"""

from .config import CloudConfig, load_config
from .exceptions import (
    APIError,
    ClientError,
    CommunicationError,
    ConfigurationError,
    GroupNotFoundError,
    InvariantViolation,
    NotImplementedByProvider,
    OperationFailedError,
    ResponseDecodeError,
    ServerError,
    SgCloudError,
    TransportError,
    UnknownGroupError,
)
from .logging import get_logger, log_function_call, setup_logging

__all__ = [
    "SgCloudError",
    "ConfigurationError",
    "CommunicationError",
    "TransportError",
    "APIError",
    "ServerError",
    "ClientError",
    "ResponseDecodeError",
    "OperationFailedError",
    "InvariantViolation",
    "GroupNotFoundError",
    "NotImplementedByProvider",
    "UnknownGroupError",
    "CloudConfig",
    "load_config",
    "setup_logging",
    "get_logger",
    "log_function_call",
]
