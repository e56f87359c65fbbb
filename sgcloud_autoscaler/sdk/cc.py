"""
Client for the sgcloud container-cluster service.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from ..utils.exceptions import OperationFailedError
from ..utils.logging import get_logger
from .gateway import RegionEndpointResolver, RequestGateway
from .transport import RetryableTransport

logger = get_logger(__name__)

# Region -> host of the cluster service.
CC_ENDPOINTS = MappingProxyType({"bqj": "sgcloud_ers_service", "debug": ""})

LIST_PAGE_SIZE = 1000


def check_envelope(operation: str, document: Any) -> Any:
    """Raise if a ``{code, message, success}`` envelope reports failure."""
    if isinstance(document, dict) and document.get("success") is False:
        raise OperationFailedError(
            operation, document.get("code"), str(document.get("message", ""))
        )
    return document


def _lower_keys(document: dict[str, Any]) -> dict[str, Any]:
    return {str(k).lower(): v for k, v in document.items()}


@dataclass
class Instance:
    """A cluster node as reported by the cluster service."""

    id: str
    name: str = ""
    role: int = 0
    status: int = 0
    spec: str = ""
    cpu_use: str = ""
    mem_use: str = ""
    up_time: str = ""
    vm_id: str = ""
    node_id: str = ""

    @classmethod
    def from_dict(cls, item: dict[str, Any]) -> "Instance":
        return cls(
            id=str(item["id"]),
            name=str(item.get("name") or ""),
            role=int(item.get("role") or 0),
            status=int(item.get("status") or 0),
            spec=str(item.get("spec") or ""),
            cpu_use=str(item.get("cpuUse") or ""),
            mem_use=str(item.get("memUse") or ""),
            up_time=str(item.get("upTime") or ""),
            vm_id=str(item.get("vmId") or ""),
            node_id=str(item.get("nodeId") or ""),
        )


@dataclass
class ContainerCluster:
    """Cluster descriptor. Unknown fields are kept in ``raw``."""

    id: str
    name: str = ""
    cluster_name: str = ""
    cluster_type: int = 0
    k8s_version: int = 0
    node_count: int = 0
    vpc_network: str = ""
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> "ContainerCluster":
        # the service answers with Go-style field names, match case-insensitively
        data = _lower_keys(document)
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            cluster_name=str(data.get("clustername") or ""),
            cluster_type=int(data.get("clustertype") or 0),
            k8s_version=int(data.get("k8sversion") or 0),
            node_count=int(data.get("nodecount") or 0),
            vpc_network=str(data.get("vpcnetowrk") or data.get("vpcnetwork") or ""),
            raw=dict(document),
        )


@dataclass
class Tag:
    key: str
    value: str


@dataclass
class ScalingGroup:
    """Instance template of an autoscaling group."""

    instance_type: int
    cpu: int = 0
    memory: int = 0
    gpu_count: int = 0
    gpu_card: str = ""
    disk_size: int = 0
    ephemeral_storage: int = 0
    tags: list[Tag] = field(default_factory=list)

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> "ScalingGroup":
        return cls(
            instance_type=int(document.get("instanceType") or 0),
            cpu=int(document.get("cpu") or 0),
            memory=int(document.get("memory") or 0),
            gpu_count=int(document.get("gpuCount") or 0),
            gpu_card=str(document.get("gpuCard") or ""),
            disk_size=int(document.get("diskSize") or 0),
            ephemeral_storage=int(document.get("ephemeralStorage") or 0),
            tags=[
                Tag(key=str(t.get("key", "")), value=str(t.get("Value", "")))
                for t in document.get("tags") or []
            ],
        )

    def tag_map(self) -> dict[str, str]:
        return {tag.key: tag.value for tag in self.tags}


@dataclass
class AddInstanceArgs:
    cluster_id: str
    delta: int

    def to_dict(self) -> dict[str, Any]:
        return {"clusterId": self.cluster_id, "delta": self.delta}


@dataclass
class RemoveInstanceArgs:
    cluster_id: str
    node_ids: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"clusterId": self.cluster_id, "nodeId": list(self.node_ids)}


def _decode_node_page(document: Any) -> list[Instance]:
    check_envelope("list cluster nodes", document)
    items = ((document or {}).get("data") or {}).get("pageItems") or []
    return [Instance.from_dict(item) for item in items]


class ClusterClient:
    """Cluster-service operations: describe, list, add and remove nodes."""

    def __init__(self, gateway: RequestGateway) -> None:
        self.gateway = gateway

    @classmethod
    def create(
        cls,
        transport: RetryableTransport,
        region: str = "",
        endpoint: str = "",
        protocol: str = "http",
        api_version: str = "",
    ) -> "ClusterClient":
        resolver = RegionEndpointResolver(CC_ENDPOINTS, region=region, override=endpoint)
        return cls(RequestGateway(transport, resolver, protocol, api_version))

    def describe_cluster(self, cluster_id: str) -> ContainerCluster:
        """Return the description of the cluster."""
        if not cluster_id:
            raise ValueError("cluster_id should not be empty")
        return self.gateway.call(
            "POST",
            "/cluster/get",
            body={"id": cluster_id},
            decoder=ContainerCluster.from_dict,
        )

    def list_cluster_nodes(self, cluster_id: str) -> list[Instance]:
        """Return every node currently in the cluster."""
        if not cluster_id:
            raise ValueError("cluster_id should not be empty")
        instances = self.gateway.call(
            "POST",
            "/cluster/nodes",
            body={
                "filter": {"clusterId": cluster_id},
                "pageIndex": 1,
                "pageSize": LIST_PAGE_SIZE,
                "sorter": None,
            },
            decoder=_decode_node_page,
        )
        logger.debug(f"Cluster {cluster_id} has {len(instances)} nodes")
        return instances

    def add_instances(self, args: AddInstanceArgs) -> None:
        """Ask the cluster service for ``args.delta`` more nodes."""
        self.gateway.call(
            "POST",
            "/cluster/nodes/add",
            body=args.to_dict(),
            decoder=lambda doc: check_envelope("add nodes", doc),
        )

    def remove_instances(self, args: RemoveInstanceArgs) -> None:
        """Remove exactly the nodes named in ``args.node_ids``."""
        self.gateway.call(
            "POST",
            "/cluster/nodes/delete",
            body=args.to_dict(),
            decoder=lambda doc: check_envelope("delete nodes", doc),
        )

    def describe_group(self, group_id: str) -> ScalingGroup:
        """Return the instance template of a scaling group."""
        if not group_id:
            raise ValueError("group_id should not be empty")
        return self.gateway.call(
            "GET",
            "/v1/cluster/group",
            query={"groupId": group_id},
            decoder=ScalingGroup.from_dict,
        )
