import hashlib
import json

import httpx
import pytest

from sgcloud_autoscaler.sdk.auth import DATE_HEADER, AccessKeyAuth
from sgcloud_autoscaler.sdk.retry import DefaultRetryPolicy
from sgcloud_autoscaler.sdk.transport import PendingRequest, RetryableTransport
from sgcloud_autoscaler.utils.config import CloudConfig
from sgcloud_autoscaler.utils.exceptions import (
    ClientError,
    ConfigurationError,
    ServerError,
    TransportError,
)

URL = "http://cc.internal/cluster/nodes/add"


class ScriptedHandler:
    """Serves a fixed sequence of outcomes, then 200 forever."""

    def __init__(self, outcomes=()):
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, type) and issubclass(outcome, Exception):
                raise outcome("simulated", request=request)
            return httpx.Response(outcome, text=f"status {outcome}")
        return httpx.Response(200, json={"success": True})


def make_transport(handler, sleeper, max_retries=3, max_delay=20.0, auth=None):
    return RetryableTransport(
        retry_policy=DefaultRetryPolicy(max_retries, max_delay),
        transport=httpx.MockTransport(handler),
        sleep=sleeper,
        auth=auth,
    )


def test_always_503_is_sent_max_retries_plus_one_times(sleeper):
    handler = ScriptedHandler([503] * 100)
    with make_transport(handler, sleeper, max_retries=3) as transport:
        with pytest.raises(ServerError) as excinfo:
            transport.send("POST", URL, b"{}")

    assert len(handler.requests) == 4
    assert excinfo.value.status_code == 503
    assert excinfo.value.body == "status 503"
    assert sleeper.delays == pytest.approx([0.6, 1.2, 2.4])


def test_success_returns_immediately_without_sleeping(sleeper):
    handler = ScriptedHandler()
    with make_transport(handler, sleeper) as transport:
        response = transport.send("POST", URL, b"{}")
    assert response.status_code == 200
    assert len(handler.requests) == 1
    assert sleeper.delays == []


def test_transport_errors_are_retried_then_succeed(sleeper):
    handler = ScriptedHandler([httpx.ConnectError, httpx.ReadTimeout, 500])
    with make_transport(handler, sleeper) as transport:
        response = transport.send("POST", URL, b'{"delta":1}')
    assert response.status_code == 200
    assert len(handler.requests) == 4
    assert len(sleeper.delays) == 3


def test_transport_error_surfaces_after_exhaustion(sleeper):
    handler = ScriptedHandler([httpx.ConnectError] * 10)
    with make_transport(handler, sleeper, max_retries=1) as transport:
        with pytest.raises(TransportError) as excinfo:
            transport.send("GET", URL)
    assert len(handler.requests) == 2
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
    assert excinfo.value.method == "GET"


def test_client_errors_are_not_retried(sleeper):
    handler = ScriptedHandler([404])
    with make_transport(handler, sleeper) as transport:
        with pytest.raises(ClientError) as excinfo:
            transport.send("POST", URL, b"{}")
    assert len(handler.requests) == 1
    assert excinfo.value.is_not_found
    assert sleeper.delays == []


def test_every_retry_resends_identical_body(sleeper):
    body = bytearray(json.dumps({"clusterId": "c", "nodeId": ["b", "a"]}).encode())
    expected = bytes(body)
    handler = ScriptedHandler([503, 502])

    with make_transport(handler, sleeper) as transport:
        # the caller's buffer changing after capture must not leak into retries
        pending = PendingRequest.capture("post", URL, body)
        body[:] = b"garbage"
        transport.send_request(pending)

    assert [r.content for r in handler.requests] == [expected] * 3
    assert {r.method for r in handler.requests} == {"POST"}


def test_zero_max_retries_sends_once(sleeper):
    handler = ScriptedHandler([500])
    with make_transport(handler, sleeper, max_retries=0) as transport:
        with pytest.raises(ServerError):
            transport.send("POST", URL, b"{}")
    assert len(handler.requests) == 1


def test_requests_are_signed_on_every_attempt(sleeper):
    auth = AccessKeyAuth("ak-1", "secret", clock=lambda: 1_700_000_000)
    handler = ScriptedHandler([503])
    with make_transport(handler, sleeper, auth=auth) as transport:
        transport.send("POST", URL + "?b=2&a=1%20x", b'{"delta":2}')

    assert len(handler.requests) == 2
    for request in handler.requests:
        timestamp = request.headers[DATE_HEADER]
        assert timestamp == "2023-11-14T22:13:20Z"
        assert request.headers["Authorization"] == (
            f"sgcloud-auth-v1/ak-1/{timestamp}/{auth.sign(request, timestamp)}"
        )


def test_canonical_request_covers_query_and_body():
    auth = AccessKeyAuth("ak", "sk")
    request = httpx.Request("POST", "http://h/p?b=2&a=1", content=b"{}")
    canonical = auth.canonical_request(request, "T")
    assert canonical.split("\n") == [
        "POST",
        "/p",
        "a=1&b=2",
        hashlib.sha256(b"{}").hexdigest(),
        "T",
    ]


def test_from_config_uses_configured_retry_limits(sleeper):
    handler = ScriptedHandler([503] * 10)
    config = CloudConfig(cluster_id="c", max_retries=1, max_delay=0.5, user_agent="ua/1")
    transport = RetryableTransport.from_config(
        config, transport=httpx.MockTransport(handler), sleep=sleeper
    )
    with transport:
        with pytest.raises(ServerError):
            transport.send("GET", URL)
    assert len(handler.requests) == 2
    assert sleeper.delays == [0.5]
    assert handler.requests[0].headers["User-Agent"] == "ua/1"


def test_unsupported_scheme_is_a_configuration_error_without_retry(sleeper):
    transport = RetryableTransport(retry_policy=DefaultRetryPolicy(3, 20.0), sleep=sleeper)
    with transport:
        with pytest.raises(ConfigurationError) as excinfo:
            transport.send("POST", "htp://cc.internal/cluster/get", b"{}")
    assert isinstance(excinfo.value.__cause__, httpx.UnsupportedProtocol)
    assert sleeper.delays == []


def test_invalid_url_is_a_configuration_error_without_retry(sleeper):
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.InvalidURL("simulated")

    with make_transport(handler, sleeper) as transport:
        with pytest.raises(ConfigurationError):
            transport.send("GET", URL)
    assert len(calls) == 1
    assert sleeper.delays == []
