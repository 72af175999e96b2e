# src/meshusage/clients/kubernetes/k8s_client.py
"""Kubernetes client covering the core, metrics and admission APIs used by the collector."""

import asyncio
from typing import Dict, Any, List, Optional

from kubernetes import client, config

from meshusage.core.base_client import BaseClusterClient
from meshusage.core.constants import METRICS_GROUP, METRICS_VERSION
from meshusage.core.exceptions import ClientConnectionException, ConfigurationException


def get_current_context(kubeconfig_path: Optional[str] = None) -> str:
    """Return the active context of the kubeconfig (honours ``KUBECONFIG``)."""
    try:
        _, active_context = config.list_kube_config_contexts(config_file=kubeconfig_path)
    except (config.ConfigException, OSError) as e:
        raise ConfigurationException(f"Unable to read kubeconfig: {e}")

    if not active_context or not active_context.get("name"):
        raise ConfigurationException("No current Kubernetes context found")
    return active_context["name"]


class KubernetesClient(BaseClusterClient):
    """Kubernetes client; every blocking API call runs in a worker thread."""

    def __init__(self,
                 config_dict: Dict[str, Any],
                 kubeconfig_path: Optional[str] = None,
                 context: Optional[str] = None):
        super().__init__(config_dict, "KubernetesClient")
        self.kubeconfig_path = kubeconfig_path
        self.context = context
        self.connection_pool_size = config_dict.get("connection_pool_size", 100)

        self.api_client: Optional[client.ApiClient] = None
        self.v1: Optional[client.CoreV1Api] = None
        self.custom: Optional[client.CustomObjectsApi] = None
        self.admission_v1: Optional[client.AdmissionregistrationV1Api] = None

    async def connect(self) -> None:
        """Load the kubeconfig context, verify the API server and check for metrics."""
        try:
            configuration = client.Configuration()
            config.load_kube_config(
                config_file=self.kubeconfig_path,
                context=self.context,
                client_configuration=configuration,
                persist_config=False
            )
            # Many workers share one client; avoid urllib3 pool exhaustion
            configuration.connection_pool_maxsize = self.connection_pool_size

            self.api_client = client.ApiClient(configuration)
            self.v1 = client.CoreV1Api(self.api_client)
            self.custom = client.CustomObjectsApi(self.api_client)
            self.admission_v1 = client.AdmissionregistrationV1Api(self.api_client)

            await asyncio.to_thread(self.v1.list_namespace, limit=1)
        except Exception as e:
            raise ClientConnectionException("Kubernetes", f"failed to connect to Kubernetes API server: {e}")

        self._connected = True
        self.logger.info("Kubernetes client connected", context=self.context)

        self._has_metrics = await self._check_metrics_api()

    async def _check_metrics_api(self) -> bool:
        try:
            await asyncio.to_thread(
                self.custom.list_cluster_custom_object,
                METRICS_GROUP, METRICS_VERSION, "nodes", limit=1
            )
        except Exception as e:
            self.logger.warning("Metrics API not available", error=str(e))
            return False
        self.logger.info("Metrics API available")
        return True

    async def disconnect(self) -> None:
        """Disconnect from Kubernetes cluster."""
        if self.api_client is not None:
            await asyncio.to_thread(self.api_client.close)
            self.api_client = None
        self._connected = False
        self.logger.info("Kubernetes client disconnected")

    async def health_check(self) -> bool:
        """Check Kubernetes client health."""
        try:
            if not self._connected or not self.v1:
                return False
            await asyncio.to_thread(self.v1.list_namespace, limit=1)
            return True
        except Exception as e:
            self.logger.warning("Kubernetes health check failed", error=str(e))
            return False

    async def list_namespaces(self) -> List[Any]:
        result = await asyncio.to_thread(self.v1.list_namespace)
        return list(result.items or [])

    async def get_namespace(self, name: str) -> Any:
        return await asyncio.to_thread(self.v1.read_namespace, name)

    async def list_pods(self, namespace: str) -> List[Any]:
        result = await asyncio.to_thread(self.v1.list_namespaced_pod, namespace)
        return list(result.items or [])

    async def list_nodes(self) -> List[Any]:
        result = await asyncio.to_thread(self.v1.list_node)
        return list(result.items or [])

    async def list_pod_metrics(self, namespace: str) -> List[Dict[str, Any]]:
        result = await asyncio.to_thread(
            self.custom.list_namespaced_custom_object,
            METRICS_GROUP, METRICS_VERSION, namespace, "pods"
        )
        return list(result.get("items") or [])

    async def get_node_metrics(self, name: str) -> Dict[str, Any]:
        return await asyncio.to_thread(
            self.custom.get_cluster_custom_object,
            METRICS_GROUP, METRICS_VERSION, "nodes", name
        )

    async def list_mutating_webhook_configurations(self) -> List[Any]:
        result = await asyncio.to_thread(self.admission_v1.list_mutating_webhook_configuration)
        return list(result.items or [])
