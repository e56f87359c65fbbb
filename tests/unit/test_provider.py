import dataclasses
import json

import httpx
import pytest

from sgcloud_autoscaler import cli
from sgcloud_autoscaler.scaling.provider import CloudProvider
from sgcloud_autoscaler.utils.config import CloudConfig
from sgcloud_autoscaler.utils.exceptions import (
    ConfigurationError,
    InvariantViolation,
    NotImplementedByProvider,
    UnknownGroupError,
)

from ..conftest import CLUSTER_ID


def test_facade_basics(provider):
    assert provider.name() == "sgcloud"
    assert [g.id for g in provider.node_groups()] == ["workers"]
    assert provider.list_instances("workers") == ["n1", "n2"]
    assert provider.nodes("workers") == ["sgcloud://n1", "sgcloud://n2"]
    assert provider.current_size("workers") == 2


def test_unknown_group(provider):
    with pytest.raises(UnknownGroupError):
        provider.current_size("nope")


def test_increase_then_size(provider):
    provider.increase("workers", 3)
    assert provider.current_size("workers") == 5
    with pytest.raises(InvariantViolation):
        provider.increase("workers", 1)


def test_membership_lookups(provider):
    assert provider.find_group("n1") == "workers"
    assert provider.node_group_for_provider_id("sgcloud://n2").id == "workers"
    assert provider.belongs("workers", "sgcloud://n1")


def test_delete_nodes(provider, fake_cloud):
    provider.delete_nodes("workers", ["sgcloud://n2"])
    assert fake_cloud.nodes == ["n1"]


def test_delete_nodes_of_another_group(cloud_config, fake_cloud, sleeper):
    provider = CloudProvider.build(
        cloud_config,
        ["1:5:workers", "0:2:spare"],
        http_transport=httpx.MockTransport(fake_cloud.handler),
        sleep=sleeper,
    )
    try:
        # both groups see the same listing; the first declared group owns it
        assert not provider.belongs("spare", "sgcloud://n1")
        with pytest.raises(InvariantViolation):
            provider.delete_nodes("spare", ["sgcloud://n1"])
        assert fake_cloud.calls("/cluster/nodes/delete") == []
    finally:
        provider.cleanup()


def test_refresh_picks_up_new_instances(provider, fake_cloud):
    assert provider.find_group("n1") == "workers"
    fake_cloud.nodes.append("n9")
    provider.refresh()
    assert provider.find_group("n9") == "workers"


def test_decrease_not_implemented(provider):
    with pytest.raises(NotImplementedByProvider):
        provider.decrease("workers", 1)


def test_describe_calls(provider):
    assert provider.describe_cluster().id == CLUSTER_ID
    assert provider.describe_group("workers").cpu == 4
    assert provider.describe_elastic_group("eg-1").elastic_group_id == "eg-1"


def test_build_requires_node_groups(cloud_config):
    with pytest.raises(ConfigurationError):
        CloudProvider.build(cloud_config, [], http_transport=httpx.MockTransport(lambda r: httpx.Response(200)))


def test_build_rejects_invalid_config():
    with pytest.raises(ConfigurationError):
        CloudProvider.build(CloudConfig(), ["1:5:workers"])


def first_request_headers(config, fake_cloud, sleeper):
    provider = CloudProvider.build(
        config,
        ["1:5:workers"],
        http_transport=httpx.MockTransport(fake_cloud.handler),
        sleep=sleeper,
    )
    try:
        provider.current_size("workers")
    finally:
        provider.cleanup()
    return fake_cloud.requests[0].headers


def test_build_signs_requests_when_enabled(cloud_config, fake_cloud, sleeper):
    config = dataclasses.replace(
        cloud_config, access_key_id="ak", secret_access_key="sk", sign_requests=True
    )
    headers = first_request_headers(config, fake_cloud, sleeper)
    assert headers["Authorization"].startswith("sgcloud-auth-v1/ak/")


def test_access_keys_alone_do_not_turn_on_signing(cloud_config, fake_cloud, sleeper):
    config = dataclasses.replace(cloud_config, access_key_id="ak", secret_access_key="sk")
    headers = first_request_headers(config, fake_cloud, sleeper)
    assert "Authorization" not in headers


def test_signing_without_keys_is_rejected(cloud_config):
    config = dataclasses.replace(cloud_config, sign_requests=True)
    with pytest.raises(ConfigurationError, match="SignRequests"):
        CloudProvider.build(config, ["1:5:workers"])


@pytest.fixture
def run_cli(fake_cloud, sleeper, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    config_path = tmp_path / "cloud.json"
    config_path.write_text(
        json.dumps(
            {"ClusterId": CLUSTER_ID, "CcEndpoint": "cc.internal", "ErsEndpoint": "ers.internal"}
        )
    )

    def factory(config, specs):
        return CloudProvider.build(
            config, specs, http_transport=httpx.MockTransport(fake_cloud.handler), sleep=sleeper
        )

    def run(*args):
        return cli.main(
            ["--config", str(config_path), "--nodes", "1:5:workers", *args],
            provider_factory=factory,
        )

    return run


def test_cli_groups(run_cli, capsys):
    assert run_cli("groups") == 0
    out = capsys.readouterr().out
    assert "workers" in out
    assert "Min" in out


def test_cli_size(run_cli, capsys):
    assert run_cli("size", "workers") == 0
    assert capsys.readouterr().out.strip() == "2"


def test_cli_nodes(run_cli, capsys):
    assert run_cli("nodes", "workers") == 0
    out = capsys.readouterr().out
    assert "n1" in out and "n2" in out


def test_cli_increase_and_describe(run_cli, fake_cloud, capsys):
    assert run_cli("increase", "workers", "2") == 0
    assert len(fake_cloud.nodes) == 4
    assert run_cli("describe-cluster") == 0
    assert "prod" in capsys.readouterr().out


def test_cli_reports_rejection(run_cli, fake_cloud):
    assert run_cli("delete", "n1", "n2") == 1
    assert fake_cloud.calls("/cluster/nodes/delete") == []


def test_cli_bad_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert cli.main(["--config", str(tmp_path / "missing.json"), "groups"]) == 1
