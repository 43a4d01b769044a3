"""Test fixtures for the ingress duplicator."""

import datetime

import pytest

from ingress_duplicator.crd.base import CRDMetadata
from ingress_duplicator.models import (
    AppIngress,
    AppIngressSpec,
    IngressTemplate,
    TemplateMetadata,
)
from ingress_duplicator.reconciler import AppIngressReconciler
from ingress_duplicator.store import InMemoryStore

SOURCE_NAMESPACE = "default"
TARGET_NAMESPACE = "ns1"


class FakeClock:
    """Clock that moves forward one minute every time it is read."""

    def __init__(self):
        self.now = datetime.datetime(2025, 1, 1, tzinfo=datetime.timezone.utc)

    def __call__(self):
        self.now += datetime.timedelta(minutes=1)
        return self.now


def make_app_ingress(
    name="s1",
    namespace=SOURCE_NAMESPACE,
    target_namespace=TARGET_NAMESPACE,
    ingress_name="ing1",
    spec=None,
    labels=None,
    annotations=None,
):
    """Build an AppIngress that has not been stored yet."""
    return AppIngress(
        metadata=CRDMetadata(name=name, namespace=namespace),
        spec=AppIngressSpec(
            template=IngressTemplate(
                metadata=TemplateMetadata(
                    name=ingress_name,
                    labels=labels or {},
                    annotations=annotations or {},
                ),
                spec={"host": "example.com"} if spec is None else spec,
            ),
            targetNamespace=target_namespace,
        ),
    )


@pytest.fixture
def store() -> InMemoryStore:
    """In-memory store with the default target namespace present."""
    return InMemoryStore(namespaces=[SOURCE_NAMESPACE, TARGET_NAMESPACE])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def reconciler(store: InMemoryStore, clock: FakeClock) -> AppIngressReconciler:
    return AppIngressReconciler(store, namespace_recheck_delay=60, clock=clock)


@pytest.fixture(name="make_app_ingress")
def make_app_ingress_fixture():
    return make_app_ingress
