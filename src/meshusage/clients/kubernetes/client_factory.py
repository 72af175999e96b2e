# src/meshusage/clients/kubernetes/client_factory.py
"""Kubernetes client factory."""

from typing import Dict, Any, Optional
import structlog

from .k8s_client import KubernetesClient, get_current_context

logger = structlog.get_logger(__name__)


class KubernetesClientFactory:
    """Creates clients bound to one kubeconfig context."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.kubeconfig_path = config.get("kubeconfig_path")
        self.context = config.get("context")

        self.logger = logger.bind(factory="kubernetes")

    def resolve_context(self) -> str:
        """Use the configured context, falling back to the kubeconfig's current one."""
        if self.context:
            self.logger.info("Using Kubernetes context from flags", context=self.context)
            return self.context

        self.context = get_current_context(self.kubeconfig_path)
        self.logger.info("Using current Kubernetes context", context=self.context)
        return self.context

    def create_client(self, context: Optional[str] = None) -> KubernetesClient:
        return KubernetesClient(
            config_dict=self.config,
            kubeconfig_path=self.kubeconfig_path,
            context=context or self.resolve_context()
        )
