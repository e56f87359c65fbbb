"""
Registry of statically declared groups and the instances they own.

Groups are registered once at startup. The instance -> group index is a
read-only snapshot that is rebuilt wholesale from the remote API whenever a
lookup misses; the remote service stays the source of truth.
"""

import threading
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType

from ..utils.exceptions import ConfigurationError, GroupNotFoundError, UnknownGroupError
from ..utils.logging import get_logger
from .group import Group

logger = get_logger(__name__)

InstanceLister = Callable[[Group], Iterable[str]]


class GroupRegistry:
    """Thread-safe instance id -> group lookup."""

    def __init__(self, instance_lister: InstanceLister | None = None) -> None:
        self._instance_lister = instance_lister
        self._groups: dict[str, Group] = {}
        self._index: Mapping[str, str] = MappingProxyType({})
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._groups)

    def register(self, group: Group) -> None:
        with self._lock:
            existing = self._groups.get(group.id)
            if existing is not None and existing != group:
                raise ConfigurationError(
                    f"group {group.id} registered twice with different bounds"
                )
            self._groups[group.id] = group
            self._index = MappingProxyType({})
        logger.info(f"Registered group {group.debug()}")

    def groups(self) -> list[Group]:
        with self._lock:
            return list(self._groups.values())

    def get(self, group_id: str) -> Group:
        with self._lock:
            group = self._groups.get(group_id)
        if group is None:
            raise UnknownGroupError(group_id)
        return group

    def load(self, index: Mapping[str, str]) -> None:
        """Replace the instance index wholesale."""
        with self._lock:
            unknown = set(index.values()) - set(self._groups)
            if unknown:
                raise UnknownGroupError(", ".join(sorted(unknown)))
            self._index = MappingProxyType(dict(index))

    def invalidate(self) -> None:
        with self._lock:
            self._index = MappingProxyType({})

    def refresh(self) -> None:
        """Rebuild the instance index by listing each group's instances."""
        if self._instance_lister is None:
            logger.debug("No instance lister configured, keeping current index")
            return

        index: dict[str, str] = {}
        conflicts = 0
        for group in self.groups():
            for instance_id in self._instance_lister(group):
                owner = index.setdefault(instance_id, group.id)
                if owner != group.id:
                    conflicts += 1

        if conflicts:
            logger.warning(
                f"{conflicts} instance(s) reported by more than one group; "
                "keeping the first registered owner"
            )
        self.load(index)
        logger.debug(f"Refreshed instance index: {len(index)} instances")

    def find_for_instance(self, instance_id: str) -> Group:
        """Return the group owning ``instance_id``, refreshing once on a miss."""
        with self._lock:
            group_id = self._index.get(instance_id)
        if group_id is None:
            self.refresh()
            with self._lock:
                group_id = self._index.get(instance_id)
        if group_id is None:
            raise GroupNotFoundError(instance_id)
        return self.get(group_id)
