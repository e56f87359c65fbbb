"""
Retrying HTTP transport.

One logical request may go over the wire several times. The body is
captured once as immutable bytes before the first attempt so that every
retry resends exactly the same payload, and the request signature (if any)
is recomputed per attempt from those bytes.
"""

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..utils.config import CloudConfig
from ..utils.exceptions import (
    APIError,
    ClientError,
    ConfigurationError,
    ServerError,
    TransportError,
)
from ..utils.logging import get_logger
from .query import host_to_url
from .retry import DefaultRetryPolicy, RetryPolicy

logger = get_logger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_DELAY = 20.0


@dataclass(frozen=True)
class PendingRequest:
    """Immutable snapshot of a request, safe to replay byte for byte."""

    method: str
    url: str
    body: bytes = b""
    headers: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    @classmethod
    def capture(
        cls,
        method: str,
        url: str,
        body: bytes | bytearray | str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> "PendingRequest":
        if body is None:
            raw = b""
        elif isinstance(body, str):
            raw = body.encode("utf-8")
        else:
            # copy so later mutation of a caller's bytearray cannot leak in
            raw = bytes(body)
        return cls(
            method=method.upper(),
            url=url,
            body=raw,
            headers=tuple(sorted((headers or {}).items())),
        )


def build_error(response: httpx.Response, method: str, url: str) -> APIError:
    """Classify a non-2xx response: 5xx is a server error, anything else a client error."""
    error_cls = ServerError if response.status_code >= 500 else ClientError
    return error_cls(
        status_code=response.status_code,
        body=response.text,
        method=method,
        url=url,
    )


class RetryableTransport:
    """Sends requests through a pooled ``httpx.Client``, retrying per policy."""

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        timeout: float | None = 30.0,
        max_connections: int = 2,
        proxy: str | None = None,
        user_agent: str = "",
        auth: httpx.Auth | None = None,
        debug: bool = False,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.retry_policy = retry_policy or DefaultRetryPolicy(
            DEFAULT_MAX_RETRIES, DEFAULT_MAX_DELAY
        )
        self.debug = debug
        self._sleep = sleep

        headers = {"User-Agent": user_agent} if user_agent else None
        limits = httpx.Limits(
            max_keepalive_connections=max_connections if max_connections > 0 else None
        )
        self._client = httpx.Client(
            timeout=timeout if timeout else None,
            limits=limits,
            proxy=proxy,
            headers=headers,
            auth=auth,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: CloudConfig,
        auth: httpx.Auth | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "RetryableTransport":
        proxy = None
        if config.proxy_host:
            host = config.proxy_host
            if config.proxy_port > 0:
                host = f"{host}:{config.proxy_port}"
            proxy = host_to_url(host, "http")

        return cls(
            retry_policy=DefaultRetryPolicy(config.max_retries, config.max_delay),
            timeout=config.timeout,
            max_connections=config.max_connections,
            proxy=proxy,
            user_agent=config.user_agent,
            auth=auth,
            debug=config.debug,
            transport=transport,
            sleep=sleep,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RetryableTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def send(
        self,
        method: str,
        url: str,
        body: bytes | bytearray | str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures.

        Returns the first response with a status below 400. Raises
        ``TransportError`` or an ``APIError`` subclass carrying the last
        failure once the retry policy says stop.
        """
        return self.send_request(PendingRequest.capture(method, url, body, headers))

    def send_request(self, request: PendingRequest) -> httpx.Response:
        attempt = 0
        while True:
            attempt += 1
            cause: Exception | None = None
            try:
                response = self._attempt(request)
            except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
                # a malformed endpoint fails the same way on every attempt
                raise ConfigurationError(
                    f"{request.method} {request.url}: invalid request URL: {e}"
                ) from e
            except httpx.TransportError as e:
                cause = e
                error: Exception = TransportError(
                    f"{request.method} {request.url} failed: {e!r}",
                    method=request.method,
                    url=request.url,
                )
            else:
                if response.status_code < 400:
                    return response
                error = build_error(response, request.method, request.url)

            delay = self.retry_policy.delay_before_next(error, attempt)
            if delay <= 0:
                logger.debug(
                    f"Giving up on {request.method} {request.url} after {attempt} attempt(s)"
                )
                if cause is not None:
                    raise error from cause
                raise error

            logger.warning(
                f"Attempt {attempt} of {request.method} {request.url} failed ({error}); "
                f"retrying in {delay:.2f}s"
            )
            self._sleep(delay)

    def _attempt(self, request: PendingRequest) -> httpx.Response:
        if self.debug:
            logger.debug(
                f"Request: method={request.method} url={request.url} "
                f"headers={dict(request.headers)}"
            )

        start = time.monotonic()
        response = self._client.request(
            request.method,
            request.url,
            content=request.body or None,
            headers=dict(request.headers),
        )

        if self.debug:
            logger.debug(
                f"Response: status={response.status_code} method={request.method} "
                f"url={request.url} elapsed={time.monotonic() - start:.3f}s"
            )
            logger.debug(f"Response headers: {dict(response.headers)}")
            logger.debug(f"Response body: {response.text}")
        return response
