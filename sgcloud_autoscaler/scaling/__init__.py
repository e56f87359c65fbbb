"""
Group reconciliation: registry, controller and the provider facade.
"""

from .controller import GroupController, ScaleOperation, ScaleState
from .group import (
    Group,
    instance_id_from_provider_id,
    parse_node_group_spec,
    provider_id,
)
from .provider import CloudProvider
from .registry import GroupRegistry

__all__ = [
    "CloudProvider",
    "Group",
    "GroupController",
    "GroupRegistry",
    "ScaleOperation",
    "ScaleState",
    "instance_id_from_provider_id",
    "parse_node_group_spec",
    "provider_id",
]
