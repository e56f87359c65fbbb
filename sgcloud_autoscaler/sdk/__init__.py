"""
HTTP SDK for the sgcloud APIs.
"""

from .auth import AccessKeyAuth
from .cc import (
    AddInstanceArgs,
    ClusterClient,
    ContainerCluster,
    Instance,
    RemoveInstanceArgs,
    ScalingGroup,
)
from .ers import ElasticGroup, ElasticGroupClient
from .gateway import EndpointResolver, RegionEndpointResolver, RequestGateway
from .query import get_url, host_to_url, to_canonical_query_string, url_encode
from .retry import DefaultRetryPolicy, RetryPolicy
from .transport import PendingRequest, RetryableTransport

__all__ = [
    "AccessKeyAuth",
    "AddInstanceArgs",
    "ClusterClient",
    "ContainerCluster",
    "Instance",
    "RemoveInstanceArgs",
    "ScalingGroup",
    "ElasticGroup",
    "ElasticGroupClient",
    "EndpointResolver",
    "RegionEndpointResolver",
    "RequestGateway",
    "get_url",
    "host_to_url",
    "to_canonical_query_string",
    "url_encode",
    "DefaultRetryPolicy",
    "RetryPolicy",
    "PendingRequest",
    "RetryableTransport",
]
