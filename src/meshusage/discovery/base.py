"""Base worker interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional
import structlog

from meshusage.core.base_client import BaseClusterClient
from meshusage.core.cancellation import CancellationToken
from meshusage.core.retry import MetricsRetryPolicy
from meshusage.mappers.resource_mapper import ResourceDataMapper

logger = structlog.get_logger(__name__)


class BaseWorker(ABC):
    """Processes one cluster entity per call; instances are shared by all tasks of a pass."""

    def __init__(self,
                 client: BaseClusterClient,
                 token: CancellationToken,
                 retry_policy: Optional[MetricsRetryPolicy] = None,
                 mapper: Optional[ResourceDataMapper] = None,
                 has_metrics: bool = False):
        self.client = client
        self.token = token
        self.retry_policy = retry_policy or MetricsRetryPolicy(token)
        self.mapper = mapper or ResourceDataMapper()
        self.has_metrics = has_metrics
        self.logger = logger.bind(worker=self.__class__.__name__)

    @abstractmethod
    async def process(self, *args: Any) -> Any:
        """Build the report entry for one entity."""
        pass

    @abstractmethod
    def get_entity_type(self) -> str:
        """Plural entity name used in progress titles and error messages."""
        pass
