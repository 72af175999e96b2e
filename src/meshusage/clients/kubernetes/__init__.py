from .client_factory import KubernetesClientFactory
from .k8s_client import KubernetesClient, get_current_context

__all__ = ["KubernetesClientFactory", "KubernetesClient", "get_current_context"]
