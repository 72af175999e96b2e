"""Per-namespace collection."""

from typing import Any, Dict, List, Optional

from meshusage.core.exceptions import CollectionCancelled
from meshusage.discovery.base import BaseWorker
from meshusage.injection.matcher import InjectionMatcher
from meshusage.models.report_models import NamespaceReport


class NamespaceWorker(BaseWorker):
    """Counts a namespace's containers and sums their requests and usage.

    Failing to read the namespace or its pods fails the entity; failing to
    read pod metrics only drops the ``actual`` figures.
    """

    def __init__(self, client, token, matcher: Optional[InjectionMatcher] = None, **kwargs):
        super().__init__(client, token, **kwargs)
        self.matcher = matcher or InjectionMatcher()

    def get_entity_type(self) -> str:
        return "namespaces"

    async def process(self, name: str, webhooks: Optional[List[Any]] = None) -> NamespaceReport:
        """Collect one namespace.

        ``webhooks`` are the sidecar injector configurations. When they could
        not be listed (``None``) every container named ``istio-proxy`` is
        taken to be an injected sidecar.
        """
        self.token.raise_if_cancelled()
        log = self.logger.bind(namespace=name)

        namespace = await self.client.get_namespace(name)
        pods = await self.client.list_pods(name)
        self.token.raise_if_cancelled()

        pod_metrics = await self._get_pod_metrics(name, log)
        self.token.raise_if_cancelled()

        namespace_labels = dict(namespace.metadata.labels or {})

        def is_injected(pod: Any) -> bool:
            if webhooks is None:
                return True
            return self.matcher.would_inject(webhooks, pod.metadata.labels or {}, namespace_labels)

        report = self.mapper.map_namespace(namespace, pods, pod_metrics, is_injected)
        log.debug(
            "Namespace processed",
            pods=report.pods,
            injected=report.is_istio_injected,
            has_actual=pod_metrics is not None
        )
        return report

    async def _get_pod_metrics(self, name: str, log) -> Optional[List[Dict[str, Any]]]:
        if not self.has_metrics:
            return None
        try:
            return await self.retry_policy.call(
                lambda: self.client.list_pod_metrics(name),
                f"metrics for namespace {name}"
            )
        except CollectionCancelled:
            raise
        except Exception as e:
            # metrics are optional
            log.warning("Failed to get metrics for namespace", error=str(e))
            return None
