"""Kubernetes operator that copies AppIngress templates into Ingresses in other namespaces."""

__version__ = "0.1.0"
