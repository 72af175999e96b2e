"""Interface of the cluster API collaborator used by the collector."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import structlog

logger = structlog.get_logger(__name__)


class BaseClusterClient(ABC):
    """Async view of the cluster API.

    Core objects are returned as kubernetes client models (``V1Namespace``,
    ``V1Pod``, ``V1Node``, ``V1MutatingWebhookConfiguration``); metrics come
    back as the plain dicts served by ``metrics.k8s.io``.
    """

    def __init__(self, config: Dict[str, Any], name: Optional[str] = None):
        self.config = config
        self.name = name or self.__class__.__name__
        self._connected = False
        self._has_metrics = False
        self.logger = logger.bind(client=self.name)

    @abstractmethod
    async def connect(self) -> None:
        """Establish the connection and check for the metrics API."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the connection."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the client connection is healthy."""

    @abstractmethod
    async def list_namespaces(self) -> List[Any]:
        ...

    @abstractmethod
    async def get_namespace(self, name: str) -> Any:
        ...

    @abstractmethod
    async def list_pods(self, namespace: str) -> List[Any]:
        ...

    @abstractmethod
    async def list_nodes(self) -> List[Any]:
        ...

    @abstractmethod
    async def list_pod_metrics(self, namespace: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_node_metrics(self, name: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def list_mutating_webhook_configurations(self) -> List[Any]:
        ...

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def has_metrics(self) -> bool:
        """Whether the metrics API answered when the client connected."""
        return self._has_metrics

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
