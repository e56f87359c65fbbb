"""
Configuration management for the sgcloud autoscaler.

The cloud config is a JSON document using the same keys as the
cluster-autoscaler ``--cloud-config`` file, e.g.::

    {"ClusterId": "c-123", "CcRegion": "bqj", "CcEndpoint": "10.0.0.1:8080"}

Environment variables (``SGCLOUD_CLUSTER_ID`` and friends, optionally from a
``.env`` file) override values read from the file.
"""

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .exceptions import ConfigurationError

SUPPORTED_PROTOCOLS = frozenset({"http", "https"})


@dataclass(frozen=True)
class CloudConfig:
    """Static configuration of the cloud provider, read once at startup."""

    cluster_id: str = ""
    cluster_name: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    region: str = ""
    cc_region: str = ""
    ers_region: str = ""
    vpc_id: str = ""
    master_id: str = ""
    cc_endpoint: str = ""
    ers_endpoint: str = ""
    node_ip: str = ""
    debug: bool = False
    sign_requests: bool = False

    # Transport tunables
    protocol: str = "http"
    api_version: str = ""
    timeout: float = 30.0
    max_connections: int = 2
    max_retries: int = 3
    max_delay: float = 20.0
    proxy_host: str = ""
    proxy_port: int = 0
    user_agent: str = ""

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.cluster_id:
            errors.append("Cloud config must have a ClusterId")
        if self.protocol not in SUPPORTED_PROTOCOLS:
            errors.append(
                f"Protocol must be one of {sorted(SUPPORTED_PROTOCOLS)}, got {self.protocol!r}"
            )
        if self.max_retries < 0:
            errors.append(f"MaxRetries must be non-negative, got {self.max_retries}")
        if self.max_delay < 0:
            errors.append(f"MaxDelay must be non-negative, got {self.max_delay}")
        if self.max_connections < 0:
            errors.append(
                f"MaxConnections must be non-negative, got {self.max_connections}"
            )
        if self.timeout < 0:
            errors.append(f"Timeout must be non-negative, got {self.timeout}")
        if bool(self.access_key_id) != bool(self.secret_access_key):
            errors.append("AccessKeyId and SecretAccessKey must be set together")
        if self.sign_requests and not self.access_key_id:
            errors.append("SignRequests requires AccessKeyId and SecretAccessKey")

        return errors

    def ensure_valid(self) -> "CloudConfig":
        errors = self.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))
        return self


# JSON key -> (dataclass field, environment variable)
_KEYS: dict[str, tuple[str, str]] = {
    "ClusterId": ("cluster_id", "SGCLOUD_CLUSTER_ID"),
    "ClusterName": ("cluster_name", "SGCLOUD_CLUSTER_NAME"),
    "AccessKeyId": ("access_key_id", "SGCLOUD_ACCESS_KEY_ID"),
    "SecretAccessKey": ("secret_access_key", "SGCLOUD_SECRET_ACCESS_KEY"),
    "Region": ("region", "SGCLOUD_REGION"),
    "CcRegion": ("cc_region", "SGCLOUD_CC_REGION"),
    "ErsRegion": ("ers_region", "SGCLOUD_ERS_REGION"),
    "VpcId": ("vpc_id", "SGCLOUD_VPC_ID"),
    "MasterId": ("master_id", "SGCLOUD_MASTER_ID"),
    "CcEndpoint": ("cc_endpoint", "SGCLOUD_CC_ENDPOINT"),
    "ErsEndpoint": ("ers_endpoint", "SGCLOUD_ERS_ENDPOINT"),
    "NodeIP": ("node_ip", "SGCLOUD_NODE_IP"),
    "Debug": ("debug", "SGCLOUD_DEBUG"),
    "SignRequests": ("sign_requests", "SGCLOUD_SIGN_REQUESTS"),
    "Protocol": ("protocol", "SGCLOUD_PROTOCOL"),
    "APIVersion": ("api_version", "SGCLOUD_API_VERSION"),
    "Timeout": ("timeout", "SGCLOUD_TIMEOUT"),
    "MaxConnections": ("max_connections", "SGCLOUD_MAX_CONNECTIONS"),
    "MaxRetries": ("max_retries", "SGCLOUD_MAX_RETRIES"),
    "MaxDelay": ("max_delay", "SGCLOUD_MAX_DELAY"),
    "ProxyHost": ("proxy_host", "SGCLOUD_PROXY_HOST"),
    "ProxyPort": ("proxy_port", "SGCLOUD_PROXY_PORT"),
    "UserAgent": ("user_agent", "SGCLOUD_USER_AGENT"),
}

_FIELD_TYPES = {f.name: f.type for f in fields(CloudConfig)}


def _coerce(field_name: str, value: Any) -> Any:
    """Convert a raw file/environment value to the field's declared type."""
    field_type = _FIELD_TYPES[field_name]
    try:
        if field_type in (bool, "bool"):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if field_type in (int, "int"):
            return int(value)
        if field_type in (float, "float"):
            return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {field_name}: {value!r}")
    return "" if value is None else str(value)


def load_config(config_file: Path | None = None, env_file: Path | None = None) -> CloudConfig:
    """Load configuration from file and environment variables."""
    values: dict[str, Any] = {}

    # Load .env file if it exists
    env_file = env_file or Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    # Load from file if provided
    if config_file is not None:
        config_file = Path(config_file)
        try:
            with open(config_file) as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to load config file {config_file}: {e}")
        if not isinstance(raw, dict):
            raise ConfigurationError(
                f"Config file {config_file} must contain a JSON object"
            )
        for key, value in raw.items():
            if key in _KEYS:
                field_name = _KEYS[key][0]
                values[field_name] = _coerce(field_name, value)

    # Load from environment variables
    for field_name, env_name in _KEYS.values():
        env_value = os.getenv(env_name)
        if env_value is not None and env_value != "":
            values[field_name] = _coerce(field_name, env_value)

    return CloudConfig(**values)
