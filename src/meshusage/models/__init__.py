from .report_models import (
    ClusterReport,
    ContainerResources,
    NamespaceReport,
    NodeReport,
    NodeResourceSpec,
    NodeResourceSummary,
    ResourceSummary,
    Resources,
)

__all__ = [
    "ClusterReport",
    "ContainerResources",
    "NamespaceReport",
    "NodeReport",
    "NodeResourceSpec",
    "NodeResourceSummary",
    "ResourceSummary",
    "Resources",
]
