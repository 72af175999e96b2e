from .collector import UsageCollector
from .namespace_discovery import NamespaceWorker
from .node_discovery import NodeWorker
from .orchestrator import CollectionOrchestrator

__all__ = ["CollectionOrchestrator", "NamespaceWorker", "NodeWorker", "UsageCollector"]
