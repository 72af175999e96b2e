from .kubernetes import KubernetesClient, KubernetesClientFactory

__all__ = ["KubernetesClient", "KubernetesClientFactory"]
