"""
Client for the sgcloud elastic-resource (elastic group) service.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from ..utils.logging import get_logger
from .cc import check_envelope
from .gateway import RegionEndpointResolver, RequestGateway
from .transport import RetryableTransport

logger = get_logger(__name__)

# Region -> host of the elastic-resource service.
ERS_ENDPOINTS = MappingProxyType({"bqj": "sgcloud_ers_service"})


@dataclass
class ElasticGroup:
    elastic_group_id: str
    name: str = ""
    res_type: int = 0
    cluster_id: str = ""
    items: list[dict[str, Any]] = field(default_factory=list)
    notes: str = ""

    @classmethod
    def from_envelope(cls, document: Any) -> "ElasticGroup":
        check_envelope("describe elastic group", document)
        data = document["data"]
        return cls(
            elastic_group_id=str(data.get("elasticgroupid") or ""),
            name=str(data.get("name") or ""),
            res_type=int(data.get("res_type") or 0),
            cluster_id=str(data.get("ccid") or ""),
            items=list(data.get("elasticgroupitems") or []),
            notes=str(data.get("notes") or ""),
        )


class ElasticGroupClient:
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
    ) -> "ElasticGroupClient":
        resolver = RegionEndpointResolver(ERS_ENDPOINTS, region=region, override=endpoint)
        return cls(RequestGateway(transport, resolver, protocol, api_version))

    def describe_elastic_group(self, group_id: str) -> ElasticGroup:
        """Return the elastic group with the given id."""
        if not group_id:
            raise ValueError("group_id should not be empty")
        group = self.gateway.call(
            "GET",
            f"/api/elasticgroups/{group_id}/get",
            decoder=ElasticGroup.from_envelope,
        )
        logger.debug(f"Elastic group {group_id}: {group}")
        return group
