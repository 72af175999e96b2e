"""Run driver: resume, identity check, both passes and the final save."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, List, Optional

import structlog

from meshusage.config.settings import Settings
from meshusage.core.base_client import BaseClusterClient
from meshusage.core.cancellation import CancellationToken
from meshusage.core.exceptions import ClusterMismatchException, ReportLoadException
from meshusage.core.obfuscation import NameObfuscator
from meshusage.core.progress import NullProgressReporter, ProgressReporter
from meshusage.core.retry import MetricsRetryPolicy
from meshusage.discovery.namespace_discovery import NamespaceWorker
from meshusage.discovery.node_discovery import NodeWorker
from meshusage.discovery.orchestrator import CollectionOrchestrator
from meshusage.injection.cache import SelectorMatchCache
from meshusage.injection.matcher import InjectionMatcher
from meshusage.models.report_models import ClusterReport
from meshusage.storage.file_storage import ReportFileStorage

logger = structlog.get_logger(__name__)


class UsageCollector:
    """Collects one cluster into a report file.

    The cluster identity is the kubeconfig context name, obfuscated when
    names are hidden. A resumed report must carry the same identity.
    """

    def __init__(self,
                 settings: Settings,
                 client: BaseClusterClient,
                 context: str,
                 token: Optional[CancellationToken] = None,
                 obfuscator: Optional[NameObfuscator] = None,
                 selector_cache: Optional[SelectorMatchCache] = None,
                 progress: Optional[ProgressReporter] = None,
                 storage: Optional[ReportFileStorage] = None,
                 retry_policy: Optional[MetricsRetryPolicy] = None):
        self.settings = settings
        self.client = client
        self.context = context
        self.token = token or CancellationToken()
        self.obfuscator = obfuscator or NameObfuscator()
        self.selector_cache = selector_cache or SelectorMatchCache()
        self.progress = progress or NullProgressReporter()
        self.storage = storage or ReportFileStorage()

        collection = settings.collection
        self.retry_policy = retry_policy or MetricsRetryPolicy(
            self.token,
            max_attempts=collection.metrics_retry_attempts,
            base_delay=collection.metrics_retry_base_delay
        )

        self.logger = logger.bind(context=context)

    @property
    def cluster_identity(self) -> str:
        if self.settings.collection.hide_names:
            return self.obfuscator.obfuscate(self.context)
        return self.context

    @property
    def output_path(self) -> Path:
        output = self.settings.output
        prefix = output.file_prefix or self.cluster_identity
        return self.storage.output_path(output.directory, prefix, output.format.value)

    def load_existing(self) -> ClusterReport:
        """Seed report for this run; a fresh one unless resuming from a readable file."""
        path = self.output_path
        if not self.settings.collection.continue_processing:
            return ClusterReport()

        self.logger.info("Continuing from existing data file", path=str(path))
        try:
            existing = self.storage.load(path)
        except ReportLoadException as e:
            self.logger.warning("Failed to load existing data, starting fresh", error=e.message)
            return ClusterReport()

        if existing.name != self.cluster_identity:
            raise ClusterMismatchException(self.cluster_identity, existing.name)

        self.logger.info(f"Loaded existing data with {len(existing.namespaces)} namespaces")
        return existing

    async def list_sidecar_webhooks(self, matcher: InjectionMatcher) -> Optional[List[Any]]:
        try:
            configurations = await self.client.list_mutating_webhook_configurations()
        except Exception as e:
            self.logger.warning(
                "Failed to list mutating webhook configurations; treating every istio-proxy container as injected",
                error=str(e)
            )
            return None

        webhooks = matcher.filter_sidecar_webhooks(configurations)
        self.logger.info(f"Found {len(webhooks)} istio sidecar injector webhook configurations")
        return webhooks

    def build_orchestrator(self, matcher: InjectionMatcher) -> CollectionOrchestrator:
        has_metrics = self.client.has_metrics
        worker_args = dict(retry_policy=self.retry_policy, has_metrics=has_metrics)
        return CollectionOrchestrator(
            client=self.client,
            config=self.settings.collection.model_dump(),
            token=self.token,
            namespace_worker=NamespaceWorker(self.client, self.token, matcher=matcher, **worker_args),
            node_worker=NodeWorker(self.client, self.token, **worker_args),
            obfuscator=self.obfuscator,
            progress=self.progress
        )

    async def run(self) -> Path:
        """Collect the cluster and write the report; returns the report path."""
        path = self.output_path
        report = self.load_existing()

        async with self.client:
            if not report.name:
                self.token.raise_if_cancelled()
                report.name = self.cluster_identity

            matcher = InjectionMatcher(self.selector_cache)
            webhooks = await self.list_sidecar_webhooks(matcher)
            orchestrator = self.build_orchestrator(matcher)
            # blocking client calls share the loop's default executor
            asyncio.get_running_loop().set_default_executor(
                ThreadPoolExecutor(max_workers=orchestrator.worker_threads, thread_name_prefix="meshusage")
            )

            self.token.cancel_after(self.settings.collection.timeout_seconds)
            try:
                self.logger.info("Gathering namespace information")
                await orchestrator.collect_namespaces(report, webhooks)

                self.logger.info("Gathering node information")
                await orchestrator.collect_nodes(report)
            except Exception:
                if self.settings.collection.continue_processing:
                    report.has_metrics = self.client.has_metrics
                    self.storage.save(report, path)
                    self.logger.info("Saved partial results for a later --continue run", path=str(path))
                raise
            finally:
                self.token.clear_deadline()

            report.has_metrics = self.client.has_metrics

        self.storage.save(report, path)
        self.logger.info(
            "Collection complete",
            namespaces=len(report.namespaces),
            nodes=len(report.nodes),
            selector_cache_hits=self.selector_cache.hits,
            obfuscation_cache_entries=len(self.obfuscator)
        )
        return path
