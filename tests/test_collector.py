import asyncio
import json

import pytest
from kubernetes.client.rest import ApiException

from meshusage.core.exceptions import ClusterMismatchException, CollectionException
from meshusage.core.obfuscation import NameObfuscator
from meshusage.core.retry import MetricsRetryPolicy
from meshusage.discovery.collector import UsageCollector
from conftest import no_sleep


def make_collector(settings, cluster, token, context="kind-test"):
    return UsageCollector(
        settings=settings,
        client=cluster,
        context=context,
        token=token,
        retry_policy=MetricsRetryPolicy(token, sleep=no_sleep),
    )


@pytest.mark.asyncio
async def test_full_run_writes_report(settings_factory, sample_cluster, token, tmp_path):
    path = await make_collector(settings_factory(), sample_cluster, token).run()

    assert path == tmp_path / "kind-test.json"
    data = json.loads(path.read_text())

    assert data["name"] == "kind-test"
    assert data["has_metrics"] is True
    assert list(data["namespaces"]) == ["bookinfo", "default", "payments"]
    assert list(data["nodes"]) == ["node-a", "node-b"]

    bookinfo = data["namespaces"]["bookinfo"]
    assert bookinfo["pods"] == 2
    assert bookinfo["is_istio_injected"] is True
    assert bookinfo["resources"]["istio"]["containers"] == 2
    assert bookinfo["resources"]["regular"]["actual"]["cpu"] == pytest.approx(0.2)

    default = data["namespaces"]["default"]
    assert default["is_istio_injected"] is False
    assert "istio" not in default["resources"]

    assert data["nodes"]["node-b"]["instance_type"] == "m5.2xlarge"
    assert data["nodes"]["node-a"]["resources"]["actual"]["cpu"] == pytest.approx(1.5)
    assert sample_cluster.connects == 1
    assert not sample_cluster.is_connected


@pytest.mark.asyncio
async def test_hidden_names(settings_factory, sample_cluster, token, tmp_path):
    path = await make_collector(settings_factory(hide_names=True), sample_cluster, token).run()

    obfuscator = NameObfuscator()
    assert path == tmp_path / f"{obfuscator.obfuscate('kind-test')}.json"
    data = json.loads(path.read_text())
    assert data["name"] == obfuscator.obfuscate("kind-test")
    assert obfuscator.obfuscate("bookinfo") in data["namespaces"]
    assert "bookinfo" not in data["namespaces"]


@pytest.mark.asyncio
async def test_no_metrics_api(settings_factory, sample_cluster, token):
    sample_cluster.metrics_available = False

    path = await make_collector(settings_factory(), sample_cluster, token).run()

    data = json.loads(path.read_text())
    assert data["has_metrics"] is False
    assert "actual" not in data["namespaces"]["bookinfo"]["resources"]["regular"]
    assert "actual" not in data["nodes"]["node-a"]["resources"]
    assert sample_cluster.calls["list_pod_metrics"] == 0


@pytest.mark.asyncio
async def test_resumed_run_is_identical_and_skips_work(settings_factory, sample_cluster, token):
    path = await make_collector(settings_factory(), sample_cluster, token).run()
    first = path.read_bytes()
    namespace_calls = sample_cluster.calls["get_namespace"]
    node_metric_calls = sample_cluster.calls["get_node_metrics"]

    resumed = make_collector(settings_factory(continue_processing=True), sample_cluster, token)
    assert await resumed.run() == path

    assert path.read_bytes() == first
    assert sample_cluster.calls["get_namespace"] == namespace_calls
    assert sample_cluster.calls["get_node_metrics"] == node_metric_calls


@pytest.mark.asyncio
async def test_resume_with_missing_file_starts_fresh(settings_factory, sample_cluster, token):
    path = await make_collector(settings_factory(continue_processing=True), sample_cluster, token).run()

    assert len(json.loads(path.read_text())["namespaces"]) == 3


@pytest.mark.asyncio
async def test_resume_from_another_cluster_fails_without_writing(settings_factory, sample_cluster, token, tmp_path):
    path = tmp_path / "kind-test.json"
    original = json.dumps({"name": "other-cluster", "namespaces": {}, "nodes": {}, "has_metrics": False})
    path.write_text(original)

    with pytest.raises(ClusterMismatchException):
        await make_collector(settings_factory(continue_processing=True), sample_cluster, token).run()

    assert path.read_text() == original
    assert sample_cluster.connects == 0


@pytest.mark.asyncio
async def test_pass_failure_writes_nothing(settings_factory, sample_cluster, token, tmp_path):
    sample_cluster.failures["list_pods"] = {"payments": ApiException(status=500)}

    with pytest.raises(CollectionException):
        await make_collector(settings_factory(), sample_cluster, token).run()

    assert not (tmp_path / "kind-test.json").exists()


@pytest.mark.asyncio
async def test_pass_failure_in_resume_mode_saves_partial_results(settings_factory, sample_cluster, token, tmp_path):
    sample_cluster.failures["list_pods"] = {"payments": ApiException(status=500)}
    settings = settings_factory(continue_processing=True)

    with pytest.raises(CollectionException):
        await make_collector(settings, sample_cluster, token).run()

    data = json.loads((tmp_path / "kind-test.json").read_text())
    assert sorted(data["namespaces"]) == ["bookinfo", "default"]

    sample_cluster.failures.clear()
    await make_collector(settings, sample_cluster, token).run()

    data = json.loads((tmp_path / "kind-test.json").read_text())
    assert sorted(data["namespaces"]) == ["bookinfo", "default", "payments"]
    assert len(data["nodes"]) == 2


@pytest.mark.asyncio
async def test_listing_failure_in_resume_mode_saves_partial_results(settings_factory, sample_cluster, token, tmp_path):
    sample_cluster.failures["list_nodes"] = ApiException(status=500)

    with pytest.raises(ApiException):
        await make_collector(settings_factory(continue_processing=True), sample_cluster, token).run()

    data = json.loads((tmp_path / "kind-test.json").read_text())
    assert sorted(data["namespaces"]) == ["bookinfo", "default", "payments"]
    assert data["nodes"] == {}


@pytest.mark.asyncio
async def test_listing_failure_writes_nothing(settings_factory, sample_cluster, token, tmp_path):
    sample_cluster.failures["list_nodes"] = ApiException(status=500)

    with pytest.raises(ApiException):
        await make_collector(settings_factory(), sample_cluster, token).run()

    assert not (tmp_path / "kind-test.json").exists()


@pytest.mark.asyncio
async def test_default_executor_is_sized_for_the_widest_pass(settings_factory, sample_cluster, token, monkeypatch):
    executors = []
    monkeypatch.setattr(asyncio.get_running_loop(), "set_default_executor", executors.append)

    await make_collector(settings_factory(max_processors=3), sample_cluster, token).run()

    assert len(executors) == 1
    assert executors[0]._max_workers == 12
    executors[0].shutdown()

@pytest.mark.asyncio
async def test_webhook_listing_failure_falls_back_to_container_names(settings_factory, sample_cluster, token):
    sample_cluster.failures["list_mutating_webhook_configurations"] = ApiException(status=403)

    path = await make_collector(settings_factory(), sample_cluster, token).run()

    data = json.loads(path.read_text())
    assert data["namespaces"]["bookinfo"]["resources"]["istio"]["containers"] == 2
