"""
Shared pytest fixtures.

The remote API is faked with ``httpx.MockTransport``; sleeps are recorded
instead of performed.
"""

from __future__ import annotations

import json
import logging

import httpx
import pytest

from sgcloud_autoscaler.scaling.provider import CloudProvider
from sgcloud_autoscaler.utils.config import CloudConfig

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s", force=True)
logging.getLogger("sgcloud_autoscaler").setLevel(logging.DEBUG)

CLUSTER_ID = "c-1678324274"


class FakeCloud:
    """In-memory cluster service speaking the sgcloud wire format."""

    def __init__(self, nodes: list[str] | None = None) -> None:
        self.nodes: list[str] = list(nodes or [])
        self.requests: list[httpx.Request] = []
        # path -> list of (status, body) served before the normal handler
        self.failures: dict[str, list[tuple[int, str]]] = {}

    def fail(self, path: str, status: int, times: int = 1, body: str = "boom") -> None:
        self.failures.setdefault(path, []).extend([(status, body)] * times)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        queued = self.failures.get(path)
        if queued:
            status, body = queued.pop(0)
            return httpx.Response(status, text=body)

        payload = json.loads(request.content) if request.content else {}
        if path == "/cluster/nodes":
            items = [{"id": node_id, "name": node_id, "status": 1} for node_id in self.nodes]
            return httpx.Response(
                200,
                json={
                    "data": {"pageItems": items, "pageNumber": 1, "pageCount": "1"},
                    "code": 0,
                    "message": "ok",
                    "success": True,
                },
            )
        if path == "/cluster/nodes/add":
            self.nodes.extend(
                f"new-{len(self.nodes) + i}" for i in range(payload["delta"])
            )
            return httpx.Response(200, json={"code": 0, "message": "ok", "success": True})
        if path == "/cluster/nodes/delete":
            self.nodes = [n for n in self.nodes if n not in payload["nodeId"]]
            return httpx.Response(200, json={"code": 0, "message": "ok", "success": True})
        if path == "/cluster/get":
            return httpx.Response(
                200,
                json={"ID": payload["id"], "ClusterName": "prod", "NodeCount": len(self.nodes)},
            )
        if path == "/v1/cluster/group":
            return httpx.Response(
                200,
                json={
                    "instanceType": 11,
                    "cpu": 4,
                    "memory": 8,
                    "tags": [{"key": "pool", "Value": "workers"}],
                },
            )
        if path.startswith("/api/elasticgroups/"):
            group_id = path.split("/")[3]
            return httpx.Response(
                200,
                json={
                    "data": {
                        "elasticgroupid": group_id,
                        "name": "eg",
                        "res_type": 1,
                        "ccid": CLUSTER_ID,
                        "elasticgroupitems": [{"id": "x"}],
                        "notes": "",
                    },
                    "code": 0,
                    "message": "ok",
                    "success": True,
                },
            )
        return httpx.Response(404, text=f"no route for {path}")


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_cloud() -> FakeCloud:
    return FakeCloud(nodes=["n1", "n2"])


@pytest.fixture
def cloud_config() -> CloudConfig:
    return CloudConfig(
        cluster_id=CLUSTER_ID,
        cc_endpoint="cc.internal:8080",
        ers_endpoint="ers.internal:8080",
        max_retries=2,
        max_delay=5.0,
    )


@pytest.fixture
def provider(cloud_config, fake_cloud, sleeper):
    """A provider with one group ``workers`` (min 1, max 5) over the fake cloud."""
    instance = CloudProvider.build(
        cloud_config,
        ["1:5:workers"],
        http_transport=httpx.MockTransport(fake_cloud.handler),
        sleep=sleeper,
    )
    try:
        yield instance
    finally:
        instance.cleanup()
