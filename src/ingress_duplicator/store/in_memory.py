"""In-memory store with the same conflict and deletion semantics as the API server."""

import copy
import logging
import threading

from ingress_duplicator.conditions import utcnow
from ingress_duplicator.exceptions import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
)
from ingress_duplicator.models import AppIngress, Ingress

from .base import StoreClient

logger = logging.getLogger(__name__)

# Fields owned by the store; never taken from the caller's copy on update.
_SERVER_METADATA = ("resourceVersion", "deletionTimestamp", "generation", "uid")


class InMemoryStore(StoreClient):
    """StoreClient keeping manifests in dicts keyed by (namespace, name).

    Objects are stored as serialised manifests so callers never share
    mutable state with the store.
    """

    def __init__(self, namespaces=None):
        self._lock = threading.Lock()
        self._app_ingresses = {}
        self._ingresses = {}
        self._namespaces = set(namespaces or ())
        self._version = 0

    def _next_version(self):
        self._version += 1
        return str(self._version)

    @staticmethod
    def _check_version(kind, key, stored, obj):
        requested = obj.metadata.resourceVersion
        current = stored["metadata"].get("resourceVersion")
        if requested is not None and requested != current:
            raise ConflictError(
                f"Operation cannot be fulfilled on {kind} {key[0]}/{key[1]}: "
                "the object has been modified; please apply your changes to the "
                "latest version and try again"
            )

    # Namespaces

    def add_namespace(self, name):
        with self._lock:
            self._namespaces.add(name)

    def remove_namespace(self, name):
        with self._lock:
            self._namespaces.discard(name)

    def namespace_exists(self, name):
        with self._lock:
            return name in self._namespaces

    # AppIngress

    def get_app_ingress(self, namespace, name):
        with self._lock:
            stored = self._app_ingresses.get((namespace, name))
            if stored is None:
                raise NotFoundError(f"AppIngress {namespace}/{name} not found")
            return AppIngress.from_manifest(copy.deepcopy(stored))

    def list_app_ingresses(self):
        with self._lock:
            return [
                AppIngress.from_manifest(copy.deepcopy(stored))
                for _, stored in sorted(self._app_ingresses.items())
            ]

    def create_app_ingress(self, app_ingress):
        key = (app_ingress.metadata.namespace, app_ingress.metadata.name)
        with self._lock:
            if key in self._app_ingresses:
                raise AlreadyExistsError(f"AppIngress {key[0]}/{key[1]} already exists")
            manifest = app_ingress.to_manifest()
            manifest["metadata"]["resourceVersion"] = self._next_version()
            manifest["metadata"]["generation"] = 1
            manifest["metadata"].setdefault("uid", f"uid-{self._version}")
            manifest["metadata"].pop("deletionTimestamp", None)
            self._app_ingresses[key] = manifest
            logger.debug(f"Created AppIngress {key[0]}/{key[1]}")
            return AppIngress.from_manifest(copy.deepcopy(manifest))

    def update_app_ingress(self, app_ingress):
        key = (app_ingress.metadata.namespace, app_ingress.metadata.name)
        with self._lock:
            stored = self._app_ingresses.get(key)
            if stored is None:
                raise NotFoundError(f"AppIngress {key[0]}/{key[1]} not found")
            self._check_version("appingresses", key, stored, app_ingress)

            incoming = app_ingress.to_manifest()
            metadata = incoming["metadata"]
            for field in _SERVER_METADATA:
                metadata.pop(field, None)
                if field in stored["metadata"]:
                    metadata[field] = stored["metadata"][field]

            generation = stored["metadata"].get("generation", 1)
            if incoming["spec"] != stored["spec"]:
                generation += 1
            metadata["generation"] = generation
            metadata["resourceVersion"] = self._next_version()

            updated = {
                "apiVersion": stored["apiVersion"],
                "kind": stored["kind"],
                "metadata": metadata,
                "spec": incoming["spec"],
                "status": copy.deepcopy(stored.get("status", {})),
            }

            if metadata.get("deletionTimestamp") and not metadata.get("finalizers"):
                del self._app_ingresses[key]
                logger.debug(f"AppIngress {key[0]}/{key[1]} finalized and removed")
            else:
                self._app_ingresses[key] = updated
            return AppIngress.from_manifest(copy.deepcopy(updated))

    def update_app_ingress_status(self, app_ingress):
        key = (app_ingress.metadata.namespace, app_ingress.metadata.name)
        with self._lock:
            stored = self._app_ingresses.get(key)
            if stored is None:
                raise NotFoundError(f"AppIngress {key[0]}/{key[1]} not found")
            self._check_version("appingresses", key, stored, app_ingress)

            updated = copy.deepcopy(stored)
            updated["status"] = app_ingress.to_manifest()["status"]
            updated["metadata"]["resourceVersion"] = self._next_version()
            self._app_ingresses[key] = updated
            return AppIngress.from_manifest(copy.deepcopy(updated))

    def delete_app_ingress(self, namespace, name):
        key = (namespace, name)
        with self._lock:
            stored = self._app_ingresses.get(key)
            if stored is None:
                raise NotFoundError(f"AppIngress {namespace}/{name} not found")

            if stored["metadata"].get("finalizers"):
                if not stored["metadata"].get("deletionTimestamp"):
                    stored["metadata"]["deletionTimestamp"] = utcnow().isoformat()
                    stored["metadata"]["resourceVersion"] = self._next_version()
                logger.debug(f"AppIngress {namespace}/{name} marked for deletion")
            else:
                del self._app_ingresses[key]
                logger.debug(f"Deleted AppIngress {namespace}/{name}")

    # Ingress

    def get_ingress(self, namespace, name):
        with self._lock:
            stored = self._ingresses.get((namespace, name))
            if stored is None:
                raise NotFoundError(f"Ingress {namespace}/{name} not found")
            return Ingress.from_manifest(copy.deepcopy(stored))

    def create_ingress(self, ingress):
        key = (ingress.metadata.namespace, ingress.metadata.name)
        with self._lock:
            if key[0] not in self._namespaces:
                raise NotFoundError(f"namespaces \"{key[0]}\" not found")
            if key in self._ingresses:
                raise AlreadyExistsError(f"Ingress {key[0]}/{key[1]} already exists")
            manifest = ingress.to_manifest()
            manifest["metadata"]["resourceVersion"] = self._next_version()
            manifest["metadata"].setdefault("uid", f"uid-{self._version}")
            self._ingresses[key] = manifest
            logger.debug(f"Created Ingress {key[0]}/{key[1]}")
            return Ingress.from_manifest(copy.deepcopy(manifest))

    def update_ingress(self, ingress):
        key = (ingress.metadata.namespace, ingress.metadata.name)
        with self._lock:
            stored = self._ingresses.get(key)
            if stored is None:
                raise NotFoundError(f"Ingress {key[0]}/{key[1]} not found")
            self._check_version("ingresses", key, stored, ingress)

            manifest = ingress.to_manifest()
            manifest["metadata"]["uid"] = stored["metadata"].get("uid")
            manifest["metadata"]["resourceVersion"] = self._next_version()
            if "status" in stored:
                manifest["status"] = copy.deepcopy(stored["status"])
            self._ingresses[key] = manifest
            return Ingress.from_manifest(copy.deepcopy(manifest))

    def delete_ingress(self, namespace, name):
        with self._lock:
            if self._ingresses.pop((namespace, name), None) is None:
                raise NotFoundError(f"Ingress {namespace}/{name} not found")
            logger.debug(f"Deleted Ingress {namespace}/{name}")
