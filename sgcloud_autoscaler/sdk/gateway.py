"""
Request gateway: versioned URL building, JSON encoding and response decoding
on top of the retrying transport.

Each API family (cluster service, elastic-group service) owns a gateway with
its own endpoint resolver; the transport and its connection pool are shared.
"""

import json
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, Protocol, TypeVar

from ..utils.exceptions import ConfigurationError, ResponseDecodeError
from ..utils.logging import get_logger
from .query import get_url
from .transport import RetryableTransport, build_error

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_REGION = "debug"


class EndpointResolver(Protocol):
    """Strategy that picks the host an API family is served from."""

    def resolve(self) -> str: ...


class RegionEndpointResolver:
    """Resolve a host from an explicit override or a region -> host table."""

    def __init__(
        self, endpoints: Mapping[str, str], region: str = "", override: str = ""
    ) -> None:
        self.endpoints = MappingProxyType(dict(endpoints))
        self.region = region or DEFAULT_REGION
        self.override = override

    def __repr__(self) -> str:
        return (
            f"RegionEndpointResolver(region={self.region!r}, override={self.override!r})"
        )

    def resolve(self) -> str:
        if self.override:
            return self.override
        host = self.endpoints.get(self.region, "")
        if not host:
            raise ConfigurationError(
                f"No endpoint configured for region {self.region!r}"
            )
        return host


class RequestGateway:
    """Turns ``(method, path, query, body)`` into a decoded result."""

    def __init__(
        self,
        transport: RetryableTransport,
        resolver: EndpointResolver,
        protocol: str = "http",
        api_version: str = "",
    ) -> None:
        self.transport = transport
        self.resolver = resolver
        self.protocol = protocol
        self.api_version = api_version.strip("/")

    def build_url(self, path: str, query: Mapping[str, str] | None = None) -> str:
        uri_path = path.lstrip("/")
        if self.api_version:
            uri_path = f"{self.api_version}/{uri_path}"
        return get_url(self.protocol, self.resolver.resolve(), uri_path, query)

    def call(
        self,
        method: str,
        path: str,
        query: Mapping[str, str] | None = None,
        body: Any = None,
        decoder: Callable[[Any], T] | None = None,
    ) -> T | Any:
        """Issue a request and decode the JSON response.

        ``body`` is serialized to JSON once; ``decoder`` receives the parsed
        JSON document and builds the caller's result type. Without a decoder
        the parsed document is returned as is (``None`` for an empty body).
        Non-2xx answers surface as ``ClientError``/``ServerError`` from the
        transport; undecodable bodies raise ``ResponseDecodeError``.
        """
        url = self.build_url(path, query)
        payload = None
        headers = {"Accept": "application/json"}
        if body is not None:
            payload = json.dumps(body, separators=(",", ":")).encode("utf-8")
            headers["Content-Type"] = "application/json"

        logger.debug(f"{method} {url}")
        response = self.transport.send(method, url, payload, headers)
        if not response.is_success:
            # redirects are not followed; surface them like any terminal status
            raise build_error(response, method.upper(), url)

        content = response.content
        if not content.strip():
            document = None
        else:
            try:
                document = json.loads(content)
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise ResponseDecodeError(
                    f"{method} {url} returned a non-JSON body: {e}",
                    body=response.text,
                ) from e

        if decoder is None:
            return document
        try:
            return decoder(document)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ResponseDecodeError(
                f"{method} {url} returned an unexpected document: {e}",
                body=response.text,
            ) from e
