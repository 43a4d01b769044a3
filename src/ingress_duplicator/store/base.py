"""Store client contract consumed by the reconciler."""

from abc import ABC, abstractmethod


class StoreClient(ABC):
    """Typed access to AppIngress objects, Ingress objects and namespaces.

    Every method works on a single identity and returns fresh copies.
    Implementations raise:

        NotFoundError: get/delete of an absent object, update of an absent object
        AlreadyExistsError: create of an object that already exists
        ConflictError: update with a stale metadata.resourceVersion
        TransientStoreError: store unavailable or request timed out
    """

    @abstractmethod
    def get_app_ingress(self, namespace, name):
        """Return the AppIngress ``namespace/name``."""
        pass

    @abstractmethod
    def create_app_ingress(self, app_ingress):
        pass

    @abstractmethod
    def update_app_ingress(self, app_ingress):
        """Persist metadata and spec. Status changes are ignored.

        Returns the stored object. If the object is being deleted and no
        finalizers remain, it is removed and the returned object is the last
        state it had.
        """
        pass

    @abstractmethod
    def update_app_ingress_status(self, app_ingress):
        """Persist status only. Returns the stored object."""
        pass

    @abstractmethod
    def delete_app_ingress(self, namespace, name):
        """Request deletion. Deferred while finalizers are present."""
        pass

    @abstractmethod
    def get_ingress(self, namespace, name):
        pass

    @abstractmethod
    def create_ingress(self, ingress):
        pass

    @abstractmethod
    def update_ingress(self, ingress):
        pass

    @abstractmethod
    def delete_ingress(self, namespace, name):
        pass

    @abstractmethod
    def namespace_exists(self, name):
        """Return True if the namespace exists."""
        pass
