"""
Access-key request signing.

The cluster and elastic-group services accept unsigned requests today, so
signing is opt-in (``SignRequests`` in the cloud config). The
``sgcloud-auth-v1`` header format below is provisional and may change once
the services publish a signing scheme.
"""

import hashlib
import hmac
import time
from collections.abc import Callable, Generator

import httpx

from .query import to_canonical_query_string

AUTH_PREFIX = "sgcloud-auth-v1"
DATE_HEADER = "x-sgcloud-date"


class AccessKeyAuth(httpx.Auth):
    """Sign each request with HMAC-SHA256 of its canonical form.

    The canonical request is the method, path, canonical query string,
    hex SHA-256 of the body and the timestamp, joined by newlines. httpx
    runs the flow on every send, so retries get a fresh timestamp while
    signing the very same body bytes.
    """

    requires_request_body = True

    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.access_key_id = access_key_id
        self._secret = secret_access_key.encode("utf-8")
        self._clock = clock

    def canonical_request(self, request: httpx.Request, timestamp: str) -> str:
        query = to_canonical_query_string(dict(request.url.params))
        body_hash = hashlib.sha256(request.content).hexdigest()
        return "\n".join(
            [request.method, request.url.path, query, body_hash, timestamp]
        )

    def sign(self, request: httpx.Request, timestamp: str) -> str:
        canonical = self.canonical_request(request, timestamp)
        return hmac.new(self._secret, canonical.encode("utf-8"), hashlib.sha256).hexdigest()

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        timestamp = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self._clock()))
        request.headers[DATE_HEADER] = timestamp
        request.headers["Authorization"] = (
            f"{AUTH_PREFIX}/{self.access_key_id}/{timestamp}/{self.sign(request, timestamp)}"
        )
        yield request
