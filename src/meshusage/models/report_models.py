"""
Report data models.

The report tree (cluster -> namespaces/nodes -> resource buckets) produced by
a collection run. Field names are part of the on-disk format: resume mode
reads back exactly what an earlier run wrote.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from meshusage.core.constants import UNKNOWN


class Resources(BaseModel):
    """CPU in cores and memory in GiB."""

    cpu: float = Field(0.0, ge=0, description="CPU in cores")
    memory_gb: float = Field(0.0, ge=0, description="Memory in GiB (binary)")


class ContainerResources(BaseModel):
    """One bucket of containers: count, summed requests and optional live usage."""

    containers: int = Field(0, ge=0)
    request: Resources = Field(default_factory=Resources)
    actual: Optional[Resources] = Field(None, description="Absent when the metrics API did not answer")


class ResourceSummary(BaseModel):
    """Regular containers and, when any were found, sidecar proxy containers."""

    model_config = ConfigDict(populate_by_name=True)

    regular: ContainerResources = Field(default_factory=ContainerResources)
    proxy: Optional[ContainerResources] = Field(None, alias="istio")


class NamespaceReport(BaseModel):
    pods: int = Field(0, ge=0)
    # true if the namespace is enabled for injection or a pod in it carries the sidecar
    is_istio_injected: bool = False
    resources: ResourceSummary = Field(default_factory=ResourceSummary)


class NodeResourceSpec(BaseModel):
    cpu: float = Field(0.0, ge=0)
    memory_gb: float = Field(0.0, ge=0)


class NodeResourceSummary(BaseModel):
    capacity: NodeResourceSpec = Field(default_factory=NodeResourceSpec)
    actual: Optional[NodeResourceSpec] = None


class NodeReport(BaseModel):
    instance_type: str = UNKNOWN
    region: str = UNKNOWN
    zone: str = UNKNOWN
    resources: NodeResourceSummary = Field(default_factory=NodeResourceSummary)

    @classmethod
    def create(cls, instance_type: str, region: str, zone: str,
               cpu_capacity: float, memory_capacity: float) -> "NodeReport":
        return cls(
            instance_type=instance_type,
            region=region,
            zone=zone,
            resources=NodeResourceSummary(
                capacity=NodeResourceSpec(cpu=cpu_capacity, memory_gb=memory_capacity)
            )
        )

    def set_actual(self, cpu_usage: float, memory_usage: float) -> None:
        self.resources.actual = NodeResourceSpec(cpu=cpu_usage, memory_gb=memory_usage)


class ClusterReport(BaseModel):
    """Root of the report; keyed maps may hold obfuscated names."""

    name: str = ""
    namespaces: Dict[str, NamespaceReport] = Field(default_factory=dict)
    nodes: Dict[str, NodeReport] = Field(default_factory=dict)
    has_metrics: bool = False

    def to_serializable(self) -> Dict[str, Any]:
        """Plain data for the serializer, with map keys sorted for stable output."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        data["namespaces"] = dict(sorted(data["namespaces"].items()))
        data["nodes"] = dict(sorted(data["nodes"].items()))
        return data

    @classmethod
    def from_serializable(cls, data: Optional[Dict[str, Any]]) -> "ClusterReport":
        return cls.model_validate(data or {})
