"""
sgcloud cloud provider for the cluster autoscaler.

This package provides a retrying HTTP SDK for the sgcloud APIs and the
group reconciliation layer the autoscaler control loop drives.
"""

__version__ = "0.1.0"

from .scaling import CloudProvider, Group, GroupController, GroupRegistry
from .utils.config import CloudConfig, load_config
from .utils.logging import setup_logging

__all__ = [
    "CloudProvider",
    "CloudConfig",
    "Group",
    "GroupController",
    "GroupRegistry",
    "load_config",
    "setup_logging",
]
