"""Shared fixtures: an in-memory cluster client and kubernetes object builders."""

import collections
from typing import Any, Dict, List, Optional

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from meshusage.config.settings import CollectionSettings, OutputSettings, Settings
from meshusage.core.base_client import BaseClusterClient
from meshusage.core.cancellation import CancellationToken
from meshusage.core.retry import MetricsRetryPolicy


def new_namespace(name: str, labels: Optional[Dict[str, str]] = None) -> client.V1Namespace:
    return client.V1Namespace(metadata=client.V1ObjectMeta(name=name, labels=labels))


def new_pod(namespace: str, name: str, cpu_request: str, mem_request: str,
            has_proxy: bool = False, proxy_cpu: str = "", proxy_mem: str = "",
            labels: Optional[Dict[str, str]] = None) -> client.V1Pod:
    """A pod with an ``app`` container and, optionally, an ``istio-proxy`` container."""
    requests = {}
    if cpu_request:
        requests["cpu"] = cpu_request
    if mem_request:
        requests["memory"] = mem_request

    containers = [client.V1Container(name="app", resources=client.V1ResourceRequirements(requests=requests))]
    if has_proxy:
        containers.append(client.V1Container(
            name="istio-proxy",
            resources=client.V1ResourceRequirements(requests={"cpu": proxy_cpu, "memory": proxy_mem})
        ))

    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=labels),
        spec=client.V1PodSpec(containers=containers, node_name="node-a")
    )


def new_pod_metrics(namespace: str, name: str, cpu: str, mem: str,
                    has_proxy: bool = False, proxy_cpu: str = "", proxy_mem: str = "") -> Dict[str, Any]:
    containers = [{"name": "app", "usage": {"cpu": cpu, "memory": mem}}]
    if has_proxy:
        containers.append({"name": "istio-proxy", "usage": {"cpu": proxy_cpu, "memory": proxy_mem}})
    return {
        "kind": "PodMetrics",
        "apiVersion": "metrics.k8s.io/v1beta1",
        "metadata": {"name": name, "namespace": namespace},
        "containers": containers,
    }


def new_node(name: str, cpu: str, memory: str, labels: Optional[Dict[str, str]] = None) -> client.V1Node:
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name, labels=labels),
        status=client.V1NodeStatus(capacity={"cpu": cpu, "memory": memory, "pods": "110"})
    )


def new_node_metrics(name: str, cpu: str, memory: str) -> Dict[str, Any]:
    return {
        "kind": "NodeMetrics",
        "apiVersion": "metrics.k8s.io/v1beta1",
        "metadata": {"name": name},
        "usage": {"cpu": cpu, "memory": memory},
    }


def requirement(key: str, operator: str, values: Optional[List[str]] = None) -> client.V1LabelSelectorRequirement:
    return client.V1LabelSelectorRequirement(key=key, operator=operator, values=values)


def selector(*expressions, match_labels: Optional[Dict[str, str]] = None) -> client.V1LabelSelector:
    return client.V1LabelSelector(match_expressions=list(expressions) or None, match_labels=match_labels)


def new_webhook(name: str, namespace_selector=None, object_selector=None) -> client.V1MutatingWebhook:
    return client.V1MutatingWebhook(
        name=name,
        admission_review_versions=["v1beta1", "v1"],
        client_config=client.AdmissionregistrationV1WebhookClientConfig(
            service=client.AdmissionregistrationV1ServiceReference(name="istiod", namespace="istio-system")
        ),
        side_effects="None",
        namespace_selector=namespace_selector,
        object_selector=object_selector,
    )


def new_webhook_configuration(name: str, webhooks: List[client.V1MutatingWebhook]):
    return client.V1MutatingWebhookConfiguration(metadata=client.V1ObjectMeta(name=name), webhooks=webhooks)


def default_sidecar_injector_webhooks():
    """The two configurations ``istioctl install`` creates for the default revision and its ``default`` tag."""
    revision_tag = new_webhook_configuration("istio-revision-tag-default", [
        new_webhook(
            "rev.namespace.sidecar-injector.istio.io",
            selector(requirement("istio.io/rev", "In", ["default"]),
                     requirement("istio-injection", "DoesNotExist")),
            selector(requirement("sidecar.istio.io/inject", "NotIn", ["false"])),
        ),
        new_webhook(
            "rev.object.sidecar-injector.istio.io",
            selector(requirement("istio.io/rev", "DoesNotExist"),
                     requirement("istio-injection", "DoesNotExist")),
            selector(requirement("sidecar.istio.io/inject", "NotIn", ["false"]),
                     requirement("istio.io/rev", "In", ["default"])),
        ),
        new_webhook(
            "namespace.sidecar-injector.istio.io",
            selector(requirement("istio-injection", "In", ["enabled"])),
            selector(requirement("sidecar.istio.io/inject", "NotIn", ["false"])),
        ),
        new_webhook(
            "object.sidecar-injector.istio.io",
            selector(requirement("istio-injection", "DoesNotExist"),
                     requirement("istio.io/rev", "DoesNotExist")),
            selector(requirement("sidecar.istio.io/inject", "In", ["true"]),
                     requirement("istio.io/rev", "DoesNotExist")),
        ),
    ])
    sidecar_injector = new_webhook_configuration("istio-sidecar-injector", [
        new_webhook(
            "rev.namespace.sidecar-injector.istio.io",
            selector(requirement("istio.io/rev", "In", ["default"]),
                     requirement("istio-injection", "DoesNotExist")),
            selector(requirement("sidecar.istio.io/inject", "NotIn", ["false"])),
        ),
        new_webhook(
            "rev.object.sidecar-injector.istio.io",
            selector(requirement("istio.io/rev", "DoesNotExist"),
                     requirement("istio-injection", "DoesNotExist")),
            selector(requirement("sidecar.istio.io/inject", "NotIn", ["false"]),
                     requirement("istio.io/rev", "In", ["default"])),
        ),
    ])
    return [revision_tag, sidecar_injector]


def not_found(what: str) -> ApiException:
    return ApiException(status=404, reason=f"{what} not found")


class FakeClusterClient(BaseClusterClient):
    """In-memory cluster. ``failures`` maps a method name to an exception or a per-argument dict."""

    def __init__(self,
                 namespaces: Optional[List[client.V1Namespace]] = None,
                 pods: Optional[List[client.V1Pod]] = None,
                 nodes: Optional[List[client.V1Node]] = None,
                 pod_metrics: Optional[List[Dict[str, Any]]] = None,
                 node_metrics: Optional[List[Dict[str, Any]]] = None,
                 webhooks: Optional[List[Any]] = None,
                 has_metrics: bool = True):
        super().__init__({}, "FakeClusterClient")
        self.namespaces = list(namespaces or [])
        self.pods = list(pods or [])
        self.nodes = list(nodes or [])
        self.pod_metrics = list(pod_metrics or [])
        self.node_metrics = list(node_metrics or [])
        self.webhooks = list(webhooks or [])
        self.metrics_available = has_metrics
        self.failures: Dict[str, Any] = {}
        self.calls = collections.Counter()
        self.connects = 0

    def _maybe_fail(self, method: str, arg: Any = None) -> None:
        self.calls[method] += 1
        failure = self.failures.get(method)
        if isinstance(failure, dict):
            failure = failure.get(arg)
        if failure is not None:
            raise failure

    async def connect(self) -> None:
        self.connects += 1
        self._connected = True
        self._has_metrics = self.metrics_available

    async def disconnect(self) -> None:
        self._connected = False

    async def health_check(self) -> bool:
        return self._connected

    async def list_namespaces(self):
        self._maybe_fail("list_namespaces")
        return list(self.namespaces)

    async def get_namespace(self, name: str):
        self._maybe_fail("get_namespace", name)
        for namespace in self.namespaces:
            if namespace.metadata.name == name:
                return namespace
        raise not_found(f"namespace {name}")

    async def list_pods(self, namespace: str):
        self._maybe_fail("list_pods", namespace)
        return [pod for pod in self.pods if pod.metadata.namespace == namespace]

    async def list_nodes(self):
        self._maybe_fail("list_nodes")
        return list(self.nodes)

    async def list_pod_metrics(self, namespace: str):
        self._maybe_fail("list_pod_metrics", namespace)
        return [m for m in self.pod_metrics if m["metadata"]["namespace"] == namespace]

    async def get_node_metrics(self, name: str):
        self._maybe_fail("get_node_metrics", name)
        for metrics in self.node_metrics:
            if metrics["metadata"]["name"] == name:
                return metrics
        raise not_found(f"node metrics {name}")

    async def list_mutating_webhook_configurations(self):
        self._maybe_fail("list_mutating_webhook_configurations")
        return list(self.webhooks)


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def token():
    return CancellationToken()


@pytest.fixture
def retry_policy(token):
    return MetricsRetryPolicy(token, sleep=no_sleep)


@pytest.fixture
def default_webhooks():
    return default_sidecar_injector_webhooks()


@pytest.fixture
def settings_factory(tmp_path):
    def make(**collection) -> Settings:
        collection.setdefault("hide_names", False)
        return Settings(
            collection=CollectionSettings(**collection),
            output=OutputSettings(directory=str(tmp_path), format="json"),
        )
    return make


@pytest.fixture
def sample_cluster(default_webhooks):
    """Two injected namespaces, one plain namespace and two nodes, with metrics."""
    return FakeClusterClient(
        namespaces=[
            new_namespace("default"),
            new_namespace("bookinfo", {"istio-injection": "enabled"}),
            new_namespace("payments", {"istio.io/rev": "default"}),
        ],
        pods=[
            new_pod("default", "web", "100m", "128Mi"),
            new_pod("bookinfo", "reviews", "200m", "256Mi", True, "100m", "128Mi"),
            new_pod("bookinfo", "ratings", "100m", "64Mi", True, "100m", "128Mi"),
            new_pod("payments", "api", "500m", "1Gi", True, "50m", "64Mi"),
        ],
        nodes=[
            new_node("node-a", "4", "16Gi", {
                "node.kubernetes.io/instance-type": "m5.xlarge",
                "topology.kubernetes.io/region": "us-east-1",
                "topology.kubernetes.io/zone": "us-east-1a",
            }),
            new_node("node-b", "8", "32Gi", {
                "beta.kubernetes.io/instance-type": "m5.2xlarge",
                "failure-domain.beta.kubernetes.io/region": "us-east-1",
                "failure-domain.beta.kubernetes.io/zone": "us-east-1b",
            }),
        ],
        pod_metrics=[
            new_pod_metrics("default", "web", "20m", "64Mi"),
            new_pod_metrics("bookinfo", "reviews", "150m", "180Mi", True, "50m", "64Mi"),
            new_pod_metrics("bookinfo", "ratings", "50m", "40Mi", True, "50m", "64Mi"),
            new_pod_metrics("payments", "api", "250m", "512Mi", True, "10m", "32Mi"),
        ],
        node_metrics=[
            new_node_metrics("node-a", "1500m", "6Gi"),
            new_node_metrics("node-b", "2", "10Gi"),
        ],
        webhooks=default_webhooks,
    )
