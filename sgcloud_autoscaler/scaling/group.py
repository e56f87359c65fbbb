"""
Group value objects, node-group spec parsing and provider ids.
"""

from dataclasses import dataclass

from ..utils.exceptions import ConfigurationError

PROVIDER_NAME = "sgcloud"
PROVIDER_ID_PREFIX = f"{PROVIDER_NAME}://"


@dataclass(frozen=True)
class Group:
    """A statically declared, immutable bound on a set of instances."""

    id: str
    min_size: int
    max_size: int
    name: str = ""
    region: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ConfigurationError("group id must not be empty")
        if not 0 <= self.min_size <= self.max_size:
            raise ConfigurationError(
                f"group {self.id}: expected 0 <= min ({self.min_size}) <= max ({self.max_size})"
            )

    def debug(self) -> str:
        return f"{self.id} ({self.min_size}:{self.max_size})"

    def __str__(self) -> str:
        return f"group: {self.id} min={self.min_size} max={self.max_size}"


def parse_node_group_spec(spec: str, region: str = "") -> Group:
    """Parse a ``min:max:id`` node-group spec."""
    parts = spec.split(":", 2)
    if len(parts) != 3:
        raise ConfigurationError(
            f"failed to parse node group spec {spec!r}: expected min:max:id"
        )
    min_raw, max_raw, group_id = parts
    try:
        min_size, max_size = int(min_raw), int(max_raw)
    except ValueError:
        raise ConfigurationError(
            f"failed to parse node group spec {spec!r}: sizes must be integers"
        )
    return Group(
        id=group_id.strip(),
        min_size=min_size,
        max_size=max_size,
        name=group_id.strip(),
        region=region,
    )


def provider_id(instance_id: str) -> str:
    """Build the orchestrator-facing provider id of an instance."""
    return f"{PROVIDER_ID_PREFIX}{instance_id}"


def instance_id_from_provider_id(value: str) -> str:
    """Extract the instance id from ``sgcloud://<id>``."""
    parts = value.split("//", 1)
    if len(parts) < 2 or not parts[1]:
        raise ValueError(f"unexpected provider id format: {value!r}")
    return parts[1]
