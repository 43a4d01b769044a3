"""StoreClient backed by the Kubernetes API."""

import contextlib
import logging

import kubernetes
import urllib3
from kubernetes.client.exceptions import ApiException

from ingress_duplicator.exceptions import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    StoreError,
    TransientStoreError,
)
from ingress_duplicator.models import AppIngress, Ingress
from ingress_duplicator.models.appingress import GROUP, PLURAL, VERSION

from .base import StoreClient

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = {429, 500, 502, 503, 504}


@contextlib.contextmanager
def translate_errors(description, creating=False):
    """Map ApiException and transport failures onto the store error taxonomy."""
    try:
        yield
    except ApiException as e:
        message = f"{description}: {e.status} {e.reason}"
        if e.status == 404:
            raise NotFoundError(message) from e
        if e.status == 409:
            if creating:
                raise AlreadyExistsError(message) from e
            raise ConflictError(message) from e
        if e.status in TRANSIENT_STATUSES:
            raise TransientStoreError(message, status=e.status, reason=e.reason) from e
        raise StoreError(message, status=e.status, reason=e.reason) from e
    except urllib3.exceptions.HTTPError as e:
        raise TransientStoreError(f"{description}: {e}") from e


class KubernetesStoreClient(StoreClient):
    """StoreClient talking to the cluster through the official Python client.

    Args:
        request_timeout: Seconds before a request is abandoned. A timeout is
            reported as TransientStoreError and says nothing about whether the
            write happened.
        api_client: Optional kubernetes.client.ApiClient (defaults to the
            globally loaded configuration)
    """

    def __init__(
        self,
        request_timeout=30,
        api_client=None,
        custom_api=None,
        networking_api=None,
        core_api=None,
    ):
        self.request_timeout = request_timeout
        self.api_client = api_client or kubernetes.client.ApiClient()
        self.custom_api = custom_api or kubernetes.client.CustomObjectsApi(self.api_client)
        self.networking_api = networking_api or kubernetes.client.NetworkingV1Api(
            self.api_client
        )
        self.core_api = core_api or kubernetes.client.CoreV1Api(self.api_client)

    def _to_dict(self, obj):
        if isinstance(obj, dict):
            return obj
        return self.api_client.sanitize_for_serialization(obj)

    # AppIngress

    def get_app_ingress(self, namespace, name):
        with translate_errors(f"get appingress {namespace}/{name}"):
            body = self.custom_api.get_namespaced_custom_object(
                GROUP, VERSION, namespace, PLURAL, name,
                _request_timeout=self.request_timeout,
            )
        return AppIngress.from_manifest(body)

    def create_app_ingress(self, app_ingress):
        namespace = app_ingress.metadata.namespace
        manifest = app_ingress.to_manifest()
        manifest.pop("status", None)
        with translate_errors(
            f"create appingress {namespace}/{app_ingress.metadata.name}", creating=True
        ):
            body = self.custom_api.create_namespaced_custom_object(
                GROUP, VERSION, namespace, PLURAL, manifest,
                _request_timeout=self.request_timeout,
            )
        return AppIngress.from_manifest(body)

    def update_app_ingress(self, app_ingress):
        namespace = app_ingress.metadata.namespace
        name = app_ingress.metadata.name
        with translate_errors(f"update appingress {namespace}/{name}"):
            body = self.custom_api.replace_namespaced_custom_object(
                GROUP, VERSION, namespace, PLURAL, name, app_ingress.to_manifest(),
                _request_timeout=self.request_timeout,
            )
        return AppIngress.from_manifest(body)

    def update_app_ingress_status(self, app_ingress):
        namespace = app_ingress.metadata.namespace
        name = app_ingress.metadata.name
        with translate_errors(f"update appingress status {namespace}/{name}"):
            body = self.custom_api.replace_namespaced_custom_object_status(
                GROUP, VERSION, namespace, PLURAL, name, app_ingress.to_manifest(),
                _request_timeout=self.request_timeout,
            )
        return AppIngress.from_manifest(body)

    def delete_app_ingress(self, namespace, name):
        with translate_errors(f"delete appingress {namespace}/{name}"):
            self.custom_api.delete_namespaced_custom_object(
                GROUP, VERSION, namespace, PLURAL, name,
                _request_timeout=self.request_timeout,
            )

    # Ingress

    def get_ingress(self, namespace, name):
        with translate_errors(f"get ingress {namespace}/{name}"):
            obj = self.networking_api.read_namespaced_ingress(
                name=name, namespace=namespace, _request_timeout=self.request_timeout
            )
        return Ingress.from_manifest(self._to_dict(obj))

    def create_ingress(self, ingress):
        namespace = ingress.metadata.namespace
        with translate_errors(
            f"create ingress {namespace}/{ingress.metadata.name}", creating=True
        ):
            obj = self.networking_api.create_namespaced_ingress(
                namespace=namespace,
                body=ingress.to_manifest(),
                _request_timeout=self.request_timeout,
            )
        logger.info(f"Created Ingress {namespace}/{ingress.metadata.name}")
        return Ingress.from_manifest(self._to_dict(obj))

    def update_ingress(self, ingress):
        namespace = ingress.metadata.namespace
        name = ingress.metadata.name
        with translate_errors(f"update ingress {namespace}/{name}"):
            obj = self.networking_api.replace_namespaced_ingress(
                name=name,
                namespace=namespace,
                body=ingress.to_manifest(),
                _request_timeout=self.request_timeout,
            )
        logger.info(f"Updated Ingress {namespace}/{name}")
        return Ingress.from_manifest(self._to_dict(obj))

    def delete_ingress(self, namespace, name):
        with translate_errors(f"delete ingress {namespace}/{name}"):
            self.networking_api.delete_namespaced_ingress(
                name=name, namespace=namespace, _request_timeout=self.request_timeout
            )
        logger.info(f"Deleted Ingress {namespace}/{name}")

    # Namespaces

    def namespace_exists(self, name):
        try:
            with translate_errors(f"get namespace {name}"):
                self.core_api.read_namespace(
                    name=name, _request_timeout=self.request_timeout
                )
        except NotFoundError:
            return False
        return True
