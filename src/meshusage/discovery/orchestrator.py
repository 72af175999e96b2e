"""Bounded-concurrency collection passes over namespaces and nodes."""

import asyncio
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from meshusage.core.cancellation import CancellationToken
from meshusage.core.base_client import BaseClusterClient
from meshusage.core.exceptions import CollectionCancelled, CollectionException
from meshusage.core.obfuscation import NameObfuscator
from meshusage.core.progress import NullProgressReporter, ProgressReporter
from meshusage.discovery.namespace_discovery import NamespaceWorker
from meshusage.discovery.node_discovery import NodeWorker
from meshusage.models.report_models import ClusterReport

logger = structlog.get_logger(__name__)


class CollectionOrchestrator:
    """Runs the namespace pass and the node pass against a shared report.

    Each pass lists its entities, skips those already present when resuming,
    and fans the rest out to a worker under a semaphore. Individual failures
    are logged and counted; the pass fails with the count once every task
    has finished.
    """

    def __init__(self,
                 client: BaseClusterClient,
                 config: Dict[str, Any],
                 token: CancellationToken,
                 namespace_worker: NamespaceWorker,
                 node_worker: NodeWorker,
                 obfuscator: Optional[NameObfuscator] = None,
                 progress: Optional[ProgressReporter] = None):
        self.client = client
        self.config = config
        self.token = token
        self.namespace_worker = namespace_worker
        self.node_worker = node_worker
        self.obfuscator = obfuscator or NameObfuscator()
        self.progress = progress or NullProgressReporter()

        self.hide_names = config.get("hide_names", True)
        self.continue_processing = config.get("continue_processing", False)
        self.processors = config.get("max_processors") or os.cpu_count() or 1
        self.namespace_multiplier = config.get("namespace_concurrency_multiplier", 4)
        self.node_multiplier = config.get("node_concurrency_multiplier", 2)

        self.logger = logger.bind(component="orchestrator")

    @property
    def worker_threads(self) -> int:
        """Threads needed for the widest pass to run without queueing on the executor."""
        return max(self.namespace_multiplier, self.node_multiplier) * self.processors

    def output_key(self, name: str) -> str:
        return self.obfuscator.obfuscate(name) if self.hide_names else name

    async def collect_namespaces(self, report: ClusterReport, webhooks: Optional[List[Any]] = None) -> None:
        self.token.raise_if_cancelled()
        namespaces = await self.client.list_namespaces()

        async def process(namespace: Any):
            return await self.namespace_worker.process(namespace.metadata.name, webhooks)

        await self._run_pass(
            entity_type=self.namespace_worker.get_entity_type(),
            entities=namespaces,
            results=report.namespaces,
            process=process,
            limit=self.namespace_multiplier * self.processors
        )

    async def collect_nodes(self, report: ClusterReport) -> None:
        self.token.raise_if_cancelled()
        nodes = await self.client.list_nodes()

        await self._run_pass(
            entity_type=self.node_worker.get_entity_type(),
            entities=nodes,
            results=report.nodes,
            process=self.node_worker.process,
            limit=self.node_multiplier * self.processors
        )

    async def _run_pass(self,
                        entity_type: str,
                        entities: List[Any],
                        results: Dict[str, Any],
                        process: Callable[[Any], Awaitable[Any]],
                        limit: int) -> None:
        total = len(entities)
        if total == 0:
            self.logger.warning(f"No {entity_type} found in cluster")
            return

        self.progress.start(f"Processing {entity_type}", total)
        self.logger.info(f"Found {total} {entity_type} to process")
        self.logger.info(f"Processing {entity_type} with up to {limit} concurrent requests")

        semaphore = asyncio.Semaphore(limit)
        lock = asyncio.Lock()
        errors: asyncio.Queue = asyncio.Queue(maxsize=total)
        tasks = []

        async def run(entity: Any, name: str, key: str) -> None:
            try:
                self.token.raise_if_cancelled()
                try:
                    result = await process(entity)
                finally:
                    self.progress.advance()
            except Exception as e:
                if not isinstance(e, CollectionCancelled):
                    self.logger.warning(f"Failed to process {entity_type[:-1]}", name=name, error=str(e))
                errors.put_nowait(e)
                return
            finally:
                semaphore.release()

            async with lock:
                results[key] = result

        try:
            for entity in entities:
                if self.token.cancelled:
                    self.logger.warning(f"Stopping {entity_type} dispatch", reason=self.token.reason)
                    break

                name = entity.metadata.name
                key = self.output_key(name)

                if self.continue_processing and key in results:
                    self.progress.advance()
                    continue

                await semaphore.acquire()
                tasks.append(asyncio.create_task(run(entity, name, key)))

            await asyncio.gather(*tasks)
        finally:
            self.progress.complete()

        failures = []
        while not errors.empty():
            error = errors.get_nowait()
            if not isinstance(error, CollectionCancelled):
                failures.append(error)

        if failures:
            raise CollectionException(entity_type, len(failures))
        self.token.raise_if_cancelled()
