"""Resource data mapping utilities."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from meshusage.core.constants import (
    INJECTION_ENABLED,
    INJECTION_LABEL,
    INSTANCE_TYPE_LABELS,
    PROXY_CONTAINER_NAME,
    REGION_LABELS,
    REVISION_LABEL,
    ZONE_LABELS,
)
from meshusage.core.utils import cpu_to_cores, first_label, memory_to_gib
from meshusage.models.report_models import (
    ContainerResources,
    NamespaceReport,
    NodeReport,
    ResourceSummary,
    Resources,
)

logger = structlog.get_logger(__name__)

REGULAR = "regular"
PROXY = "proxy"


@dataclass
class ResourceBucket:
    """Running totals for one container class within a namespace."""

    containers: int = 0
    cpu_request: float = 0.0
    memory_request: float = 0.0
    cpu_actual: float = 0.0
    memory_actual: float = 0.0

    def add_request(self, resources: Resources) -> None:
        self.containers += 1
        self.cpu_request += resources.cpu
        self.memory_request += resources.memory_gb

    def add_usage(self, resources: Resources) -> None:
        self.cpu_actual += resources.cpu
        self.memory_actual += resources.memory_gb

    def to_model(self, include_actual: bool) -> ContainerResources:
        return ContainerResources(
            containers=self.containers,
            request=Resources(cpu=self.cpu_request, memory_gb=self.memory_request),
            actual=Resources(cpu=self.cpu_actual, memory_gb=self.memory_actual) if include_actual else None
        )


def _labels(obj: Any) -> Dict[str, str]:
    metadata = getattr(obj, "metadata", None)
    return dict(getattr(metadata, "labels", None) or {})


def _name(obj: Any) -> str:
    metadata = getattr(obj, "metadata", None)
    return getattr(metadata, "name", None) or ""


def is_namespace_injection_enabled(namespace_labels: Optional[Mapping[str, str]]) -> bool:
    """Namespace-level opt-in: ``istio-injection=enabled`` or any revision label."""
    labels = namespace_labels or {}
    return labels.get(INJECTION_LABEL) == INJECTION_ENABLED or REVISION_LABEL in labels


class ResourceDataMapper:
    """Maps Kubernetes objects and metrics payloads to report models."""

    def map_resources(self, quantities: Optional[Mapping[str, Any]]) -> Resources:
        """Map a ``{"cpu": ..., "memory": ...}`` quantity map."""
        quantities = quantities or {}
        return Resources(
            cpu=cpu_to_cores(quantities.get("cpu")),
            memory_gb=memory_to_gib(quantities.get("memory"))
        )

    def map_container_requests(self, container: Any) -> Resources:
        resources = getattr(container, "resources", None)
        return self.map_resources(getattr(resources, "requests", None))

    def classify_pods(self, pods: Iterable[Any],
                      is_injected: Callable[[Any], bool]) -> Dict[Tuple[str, str], str]:
        """Assign each ``(pod, container)`` to the regular or proxy bucket.

        A container counts as the sidecar only when it carries the proxy
        name and its pod is one the injector would have touched.
        """
        classes: Dict[Tuple[str, str], str] = {}
        for pod in pods:
            pod_name = _name(pod)
            containers = getattr(getattr(pod, "spec", None), "containers", None) or []
            injected: Optional[bool] = None
            for container in containers:
                bucket = REGULAR
                if container.name == PROXY_CONTAINER_NAME:
                    if injected is None:
                        injected = is_injected(pod)
                    if injected:
                        bucket = PROXY
                classes[(pod_name, container.name)] = bucket
        return classes

    def map_namespace(self,
                      namespace: Any,
                      pods: List[Any],
                      pod_metrics: Optional[List[Dict[str, Any]]],
                      is_injected: Callable[[Any], bool]) -> NamespaceReport:
        """Aggregate a namespace's pods and, when present, their metrics.

        ``pod_metrics`` is ``None`` when the metrics API did not answer, in
        which case no ``actual`` figures are reported.
        """
        buckets = {REGULAR: ResourceBucket(), PROXY: ResourceBucket()}
        classes = self.classify_pods(pods, is_injected)

        for pod in pods:
            pod_name = _name(pod)
            for container in getattr(pod.spec, "containers", None) or []:
                buckets[classes[(pod_name, container.name)]].add_request(self.map_container_requests(container))

        for pod_metric in pod_metrics or []:
            pod_name = (pod_metric.get("metadata") or {}).get("name", "")
            for container_metric in pod_metric.get("containers") or []:
                bucket = classes.get((pod_name, container_metric.get("name", "")))
                if bucket is None:
                    # usage reported for a container the pod list no longer has
                    continue
                buckets[bucket].add_usage(self.map_resources(container_metric.get("usage")))

        has_actual = pod_metrics is not None
        proxy = buckets[PROXY]
        summary = ResourceSummary(
            regular=buckets[REGULAR].to_model(has_actual),
            proxy=proxy.to_model(has_actual) if proxy.containers else None
        )

        return NamespaceReport(
            pods=len(pods),
            is_istio_injected=is_namespace_injection_enabled(_labels(namespace)) or proxy.containers > 0,
            resources=summary
        )

    def map_node(self, node: Any) -> NodeReport:
        labels = _labels(node)
        capacity = self.map_resources(getattr(getattr(node, "status", None), "capacity", None))
        return NodeReport.create(
            instance_type=first_label(labels, INSTANCE_TYPE_LABELS),
            region=first_label(labels, REGION_LABELS),
            zone=first_label(labels, ZONE_LABELS),
            cpu_capacity=capacity.cpu,
            memory_capacity=capacity.memory_gb
        )

    def map_node_usage(self, node_metrics: Mapping[str, Any]) -> Resources:
        return self.map_resources(node_metrics.get("usage"))
