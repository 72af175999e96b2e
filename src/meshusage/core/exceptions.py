"""Custom exceptions for the mesh usage collector."""

from typing import Optional, Dict, Any


class CollectorException(Exception):
    """Base exception for the collector."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ClientConnectionException(CollectorException):
    """Raised when the cluster API cannot be reached at all."""

    def __init__(self, client_type: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.client_type = client_type
        super().__init__(f"{client_type} connection failed: {message}", details)


class CollectionException(CollectorException):
    """Raised when a collection pass finished with per-entity failures.

    Only the failure count is carried; the individual causes are logged by
    the workers.
    """

    def __init__(self, entity_type: str, failure_count: int, details: Optional[Dict[str, Any]] = None):
        self.entity_type = entity_type
        self.failure_count = failure_count
        super().__init__(f"encountered {failure_count} errors processing {entity_type}", details)


class CollectionCancelled(CollectorException):
    """Raised when the shared cancellation token fired. Never counted as a failure."""

    def __init__(self, reason: str = "collection cancelled"):
        super().__init__(reason)


class MetricsException(CollectorException):
    """Raised when metrics collection fails."""
    pass


class ReportLoadException(CollectorException):
    """Raised when a previously written report cannot be read."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Failed to load report {path}: {message}")


class ClusterMismatchException(CollectorException):
    """Raised when a resumed report belongs to a different cluster."""

    def __init__(self, expected: str, found: str):
        self.expected = expected
        self.found = found
        super().__init__(
            "Existing data is from a different cluster or name obfuscation is changed. "
            "Please delete the existing file and try again.",
            {"expected": expected, "found": found}
        )


class ConfigurationException(CollectorException):
    """Raised when configuration is invalid."""
    pass
