"""Istio sidecar resource usage collector."""

__version__ = "0.1.0"
