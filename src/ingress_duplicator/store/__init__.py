"""Store clients for AppIngress, Ingress and Namespace objects."""

from .base import StoreClient
from .in_memory import InMemoryStore
from .kubernetes import KubernetesStoreClient

__all__ = ["StoreClient", "InMemoryStore", "KubernetesStoreClient"]
