"""
Group controller: enforces size bounds and membership before issuing scale
calls against the cluster service.

Every scale operation goes Validating -> InFlight -> one of Succeeded,
Rejected (an invariant was violated, nothing was sent) or Failed (the
remote call failed). There is no rollback; the next read of the remote
state is authoritative.
"""

import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

from ..sdk.cc import AddInstanceArgs, ClusterClient, Instance, RemoveInstanceArgs
from ..utils.exceptions import (
    CommunicationError,
    GroupNotFoundError,
    InvariantViolation,
    NotImplementedByProvider,
)
from ..utils.logging import get_logger, log_function_call
from .group import Group
from .registry import GroupRegistry

logger = get_logger(__name__)

# pause after a deletion so we do not trip the API's flow control
SDK_COOLDOWN = 0.2


class ScaleState(Enum):
    """State of a single scale operation."""

    VALIDATING = "validating"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class ScaleOperation:
    kind: str
    group_id: str
    state: ScaleState = ScaleState.VALIDATING
    error: Exception | None = None


class GroupController:
    """Validates and issues scale intents for registered groups."""

    def __init__(
        self,
        cluster_client: ClusterClient,
        registry: GroupRegistry,
        cluster_id: str,
        cooldown: float = SDK_COOLDOWN,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cluster_client = cluster_client
        self.registry = registry
        self.cluster_id = cluster_id
        self.cooldown = cooldown
        self._sleep = sleep
        self.last_operation: ScaleOperation | None = None

    @contextmanager
    def _track(self, kind: str, group_id: str) -> Iterator[ScaleOperation]:
        operation = ScaleOperation(kind=kind, group_id=group_id)
        self.last_operation = operation
        try:
            yield operation
        except (InvariantViolation, GroupNotFoundError) as e:
            operation.state = ScaleState.REJECTED
            operation.error = e
            raise
        except Exception as e:
            operation.state = ScaleState.FAILED
            operation.error = e
            raise
        else:
            operation.state = ScaleState.SUCCEEDED

    def list_instances(self, group: Group) -> list[Instance]:
        """Query the remote API for the live instances of ``group``."""
        try:
            return self.cluster_client.list_cluster_nodes(self.cluster_id)
        except CommunicationError as e:
            raise CommunicationError(
                f"failed to list instances of group {group.id}: {e}"
            ) from e

    def list_instance_ids(self, group: Group) -> list[str]:
        return [instance.id for instance in self.list_instances(group)]

    def current_size(self, group: Group) -> int:
        """Return the live instance count of ``group``."""
        return len(self.list_instances(group))

    @log_function_call
    def increase(self, group: Group, delta: int) -> None:
        """Add ``delta`` instances, never exceeding ``group.max_size``."""
        logger.info(f"Increase group {group.id} by {delta} nodes")
        with self._track("increase", group.id) as operation:
            if delta <= 0:
                raise InvariantViolation(
                    f"size increase of group {group.id} must be positive, got {delta}"
                )
            size = self.current_size(group)
            if size + delta > group.max_size:
                raise InvariantViolation(
                    f"size increase of group {group.id} is too large - "
                    f"desired:{size + delta} max:{group.max_size}"
                )

            operation.state = ScaleState.IN_FLIGHT
            try:
                self.cluster_client.add_instances(
                    AddInstanceArgs(cluster_id=self.cluster_id, delta=delta)
                )
            except CommunicationError as e:
                raise CommunicationError(
                    f"failed to add {delta} nodes to group {group.id}: {e}"
                ) from e
        logger.info(f"Group {group.id} scaled up from {size} by {delta}")

    @log_function_call
    def delete(self, instance_ids: Sequence[str]) -> None:
        """Delete instances that all belong to one group, respecting its min size."""
        # a repeated id names one node; count and send it once
        ids = list(dict.fromkeys(instance_ids))
        if not ids:
            logger.warning("No instance ids given to delete")
            return

        logger.info(f"Start to remove instances {ids}")
        with self._track("delete", "") as operation:
            common = self.registry.find_for_instance(ids[0])
            operation.group_id = common.id
            for instance_id in ids[1:]:
                group = self.registry.find_for_instance(instance_id)
                if group.id != common.id:
                    raise InvariantViolation(
                        f"cannot delete instances which don't belong to the same group: "
                        f"{ids[0]} -> {common.id}, {instance_id} -> {group.id}"
                    )

            size = self.current_size(common)
            if size - len(ids) < common.min_size:
                raise InvariantViolation(
                    f"deleting {len(ids)} nodes from group {common.id} would drop "
                    f"its size {size} below min {common.min_size}"
                )

            operation.state = ScaleState.IN_FLIGHT
            try:
                self.cluster_client.remove_instances(
                    RemoveInstanceArgs(cluster_id=self.cluster_id, node_ids=ids)
                )
            except CommunicationError as e:
                logger.error(
                    f"Failed to remove instances {ids} from group {common.id}: {e}"
                )
                raise CommunicationError(
                    f"failed to remove instances {ids} from group {common.id}: {e}"
                ) from e

        self._sleep(self.cooldown)

    def decrease(self, group: Group, delta: int) -> None:
        """Deflate the target size without deleting nodes. Not supported."""
        raise NotImplementedByProvider(
            f"decreasing the target size of group {group.id} is not implemented"
        )
