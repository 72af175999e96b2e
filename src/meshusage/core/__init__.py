from .exceptions import *
from .base_client import BaseClusterClient
from .cancellation import CancellationToken
from .obfuscation import NameObfuscator
from .retry import MetricsRetryPolicy
from .utils import setup_logging

__all__ = [
    "BaseClusterClient",
    "CancellationToken",
    "ClientConnectionException",
    "ClusterMismatchException",
    "CollectionCancelled",
    "CollectionException",
    "CollectorException",
    "ConfigurationException",
    "MetricsException",
    "MetricsRetryPolicy",
    "NameObfuscator",
    "ReportLoadException",
    "setup_logging",
]
