from .settings import (
    CollectionSettings,
    KubernetesSettings,
    LogLevel,
    OutputFormat,
    OutputSettings,
    Settings,
)

__all__ = [
    "CollectionSettings",
    "KubernetesSettings",
    "LogLevel",
    "OutputFormat",
    "OutputSettings",
    "Settings",
]
