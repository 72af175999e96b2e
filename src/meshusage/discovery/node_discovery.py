"""Per-node collection."""

from typing import Any

from meshusage.core.exceptions import CollectionCancelled
from meshusage.discovery.base import BaseWorker
from meshusage.models.report_models import NodeReport


class NodeWorker(BaseWorker):
    """Reads topology labels and capacity; attaches live usage when available."""

    def get_entity_type(self) -> str:
        return "nodes"

    async def process(self, node: Any) -> NodeReport:
        self.token.raise_if_cancelled()
        name = node.metadata.name

        report = self.mapper.map_node(node)

        if self.has_metrics:
            try:
                metrics = await self.retry_policy.call(
                    lambda: self.client.get_node_metrics(name),
                    f"metrics for node {name}"
                )
            except CollectionCancelled:
                raise
            except Exception as e:
                self.logger.warning("Failed to get metrics for node", node=name, error=str(e))
            else:
                usage = self.mapper.map_node_usage(metrics)
                report.set_actual(usage.cpu, usage.memory_gb)

        return report
