"""
Cloud provider facade used by the autoscaler control loop.

It wires config, transport, API clients, registry and controller together
and exposes the operations the orchestrator calls, keyed by group id and
instance / provider id.
"""

import time
from collections.abc import Callable, Iterable, Sequence

import httpx

from ..sdk.auth import AccessKeyAuth
from ..sdk.cc import ClusterClient, ContainerCluster, ScalingGroup
from ..sdk.ers import ElasticGroup, ElasticGroupClient
from ..sdk.transport import RetryableTransport
from ..utils.config import CloudConfig
from ..utils.exceptions import ConfigurationError, InvariantViolation
from ..utils.logging import get_logger
from .controller import SDK_COOLDOWN, GroupController
from .group import (
    PROVIDER_NAME,
    Group,
    instance_id_from_provider_id,
    parse_node_group_spec,
    provider_id,
)
from .registry import GroupRegistry

logger = get_logger(__name__)


class CloudProvider:
    """Orchestrator-facing entry point."""

    def __init__(
        self,
        config: CloudConfig,
        transport: RetryableTransport,
        cluster_client: ClusterClient,
        elastic_group_client: ElasticGroupClient,
        registry: GroupRegistry,
        controller: GroupController,
    ) -> None:
        self.config = config
        self.transport = transport
        self.cluster_client = cluster_client
        self.elastic_group_client = elastic_group_client
        self.registry = registry
        self.controller = controller

    @classmethod
    def build(
        cls,
        config: CloudConfig,
        node_group_specs: Iterable[str],
        http_transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        cooldown: float = SDK_COOLDOWN,
    ) -> "CloudProvider":
        """Build a provider from static configuration.

        Raises ``ConfigurationError`` if the config is invalid or no node
        group spec is given.
        """
        config.ensure_valid()
        specs = list(node_group_specs)
        if not specs:
            raise ConfigurationError("node group specs must be specified")

        auth = None
        if config.sign_requests:
            auth = AccessKeyAuth(config.access_key_id, config.secret_access_key)

        transport = RetryableTransport.from_config(
            config, auth=auth, transport=http_transport, sleep=sleep
        )
        cluster_client = ClusterClient.create(
            transport,
            region=config.cc_region,
            endpoint=config.cc_endpoint,
            protocol=config.protocol,
            api_version=config.api_version,
        )
        elastic_group_client = ElasticGroupClient.create(
            transport,
            region=config.ers_region,
            endpoint=config.ers_endpoint,
            protocol=config.protocol,
            api_version=config.api_version,
        )

        # membership is learned from the same listing the controller sizes with
        registry = GroupRegistry(lambda group: controller.list_instance_ids(group))
        controller = GroupController(
            cluster_client, registry, config.cluster_id, cooldown=cooldown, sleep=sleep
        )

        provider = cls(
            config, transport, cluster_client, elastic_group_client, registry, controller
        )
        for spec in specs:
            provider.add_node_group(parse_node_group_spec(spec, region=config.region))
        return provider

    def add_node_group(self, group: Group) -> None:
        self.registry.register(group)

    def name(self) -> str:
        return PROVIDER_NAME

    def node_groups(self) -> list[Group]:
        return self.registry.groups()

    def group(self, group_id: str) -> Group:
        return self.registry.get(group_id)

    def list_instances(self, group_id: str) -> list[str]:
        return self.controller.list_instance_ids(self.group(group_id))

    def nodes(self, group_id: str) -> list[str]:
        """Provider ids of every instance in the group."""
        return [provider_id(i) for i in self.list_instances(group_id)]

    def current_size(self, group_id: str) -> int:
        return self.controller.current_size(self.group(group_id))

    def increase(self, group_id: str, delta: int) -> None:
        self.controller.increase(self.group(group_id), delta)

    def decrease(self, group_id: str, delta: int) -> None:
        self.controller.decrease(self.group(group_id), delta)

    def delete(self, instance_ids: Sequence[str]) -> None:
        self.controller.delete(instance_ids)

    def find_group(self, instance_id: str) -> str:
        return self.registry.find_for_instance(instance_id).id

    def node_group_for_provider_id(self, value: str) -> Group:
        return self.registry.find_for_instance(instance_id_from_provider_id(value))

    def belongs(self, group_id: str, value: str) -> bool:
        """Whether the node with provider id ``value`` belongs to ``group_id``."""
        return self.node_group_for_provider_id(value).id == self.group(group_id).id

    def delete_nodes(self, group_id: str, provider_ids: Sequence[str]) -> None:
        """Delete nodes of one group, failing if any node belongs elsewhere."""
        group = self.group(group_id)
        instance_ids = []
        for value in provider_ids:
            if not self.belongs(group.id, value):
                raise InvariantViolation(
                    f"{value} belongs to a different group than {group.id}"
                )
            instance_ids.append(instance_id_from_provider_id(value))
        self.controller.delete(instance_ids)

    def describe_cluster(self) -> ContainerCluster:
        return self.cluster_client.describe_cluster(self.config.cluster_id)

    def describe_group(self, group_id: str) -> ScalingGroup:
        return self.cluster_client.describe_group(group_id)

    def describe_elastic_group(self, group_id: str) -> ElasticGroup:
        return self.elastic_group_client.describe_elastic_group(group_id)

    def refresh(self) -> None:
        """Drop cached membership; the next lookup re-reads the remote state."""
        self.registry.invalidate()

    def cleanup(self) -> None:
        self.transport.close()
