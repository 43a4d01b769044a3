"""Tests for the AppIngress reconciler."""

from unittest import mock

import pytest

from ingress_duplicator import conditions
from ingress_duplicator.crd.base import CRDMetadata
from ingress_duplicator.exceptions import (
    ConflictError,
    NotFoundError,
    StoreError,
    TransientStoreError,
)
from ingress_duplicator.finalizers import CLEANUP_FINALIZER
from ingress_duplicator.models import Ingress
from ingress_duplicator.reconciler import (
    ACTION_CONVERGED,
    ACTION_FINALIZED,
    ACTION_NAMESPACE_MISSING,
    ACTION_NONE,
    AppIngressReconciler,
    ReconcileResult,
)
from ingress_duplicator.store import InMemoryStore


def summarize(app_ingress):
    return [(c.type, c.status, c.reason) for c in app_ingress.status.conditions]


def transition_times(app_ingress):
    return {c.type: c.lastTransitionTime for c in app_ingress.status.conditions}


def test_missing_object_is_a_no_op(reconciler: AppIngressReconciler) -> None:
    """Reconciling an AppIngress that does not exist does nothing."""
    assert reconciler.reconcile("default", "absent") == ReconcileResult(ACTION_NONE)


def test_namespace_missing(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """A missing target namespace is reported as a condition, not an error."""
    store.create_app_ingress(make_app_ingress(target_namespace="missing-ns"))

    result = reconciler.reconcile("default", "s1")

    assert result == ReconcileResult(ACTION_NAMESPACE_MISSING, requeue_after=60)
    app = store.get_app_ingress("default", "s1")
    assert summarize(app) == [("NamespaceValid", "False", "NotFound")]
    assert app.status.conditions[0].message == "Target namespace does not exist"
    assert CLEANUP_FINALIZER in app.metadata.finalizers
    for namespace in ("missing-ns", "ns1", "default"):
        with pytest.raises(NotFoundError):
            store.get_ingress(namespace, "ing1")


def test_namespace_missing_without_recheck(store: InMemoryStore, make_app_ingress) -> None:
    """With the re-check disabled no requeue is requested."""
    store.create_app_ingress(make_app_ingress(target_namespace="missing-ns"))
    reconciler = AppIngressReconciler(store)

    result = reconciler.reconcile("default", "s1")

    assert result == ReconcileResult(ACTION_NAMESPACE_MISSING, requeue_after=None)


def test_creates_ingress_in_target_namespace(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """First reconcile adds the finalizer, creates the Ingress and sets conditions."""
    store.create_app_ingress(make_app_ingress())

    result = reconciler.reconcile("default", "s1")

    assert result == ReconcileResult(ACTION_CONVERGED)
    ingress = store.get_ingress("ns1", "ing1")
    assert ingress.spec == {"host": "example.com"}

    app = store.get_app_ingress("default", "s1")
    assert app.metadata.finalizers == [CLEANUP_FINALIZER]
    assert summarize(app) == [
        ("NamespaceValid", "True", "Valid"),
        ("IngressCreated", "True", "Created"),
    ]
    assert all(c.observedGeneration == 1 for c in app.status.conditions)


def test_copies_labels_and_annotations_without_owner_reference(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """Template metadata is copied verbatim and no owner reference is written."""
    store.create_app_ingress(
        make_app_ingress(
            labels={"app": "web"},
            annotations={"nginx.ingress.kubernetes.io/rewrite-target": "/"},
        )
    )

    reconciler.reconcile("default", "s1")

    ingress = store.get_ingress("ns1", "ing1")
    assert ingress.metadata.labels == {"app": "web"}
    assert ingress.metadata.annotations == {
        "nginx.ingress.kubernetes.io/rewrite-target": "/"
    }
    assert "ownerReferences" not in ingress.to_manifest()["metadata"]


def test_reconcile_is_idempotent(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """A second reconcile of an unchanged AppIngress changes nothing."""
    store.create_app_ingress(make_app_ingress())
    reconciler.reconcile("default", "s1")
    app_before = store.get_app_ingress("default", "s1")
    ingress_before = store.get_ingress("ns1", "ing1")

    assert reconciler.reconcile("default", "s1") == ReconcileResult(ACTION_CONVERGED)

    assert store.get_app_ingress("default", "s1") == app_before
    assert store.get_ingress("ns1", "ing1") == ingress_before
    assert len(app_before.status.conditions) == 2


def test_template_update_keeps_transition_times(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """Changing the template updates the Ingress without flipping conditions."""
    store.create_app_ingress(make_app_ingress())
    reconciler.reconcile("default", "s1")
    app = store.get_app_ingress("default", "s1")
    before = transition_times(app)

    app.spec.template.spec["host"] = "new.com"
    store.update_app_ingress(app)
    reconciler.reconcile("default", "s1")

    assert store.get_ingress("ns1", "ing1").spec == {"host": "new.com"}
    app = store.get_app_ingress("default", "s1")
    assert transition_times(app) == before
    assert all(c.observedGeneration == 2 for c in app.status.conditions)


@pytest.mark.parametrize(
    ("payload", "updated_payload"),
    [
        ({"host": "example.com"}, {"host": "new.com"}),
        (
            {
                "rules": [
                    {
                        "host": "example.com",
                        "http": {
                            "paths": [
                                {
                                    "path": "/",
                                    "pathType": "Prefix",
                                    "backend": {
                                        "service": {
                                            "name": "test-service",
                                            "port": {"number": 80},
                                        }
                                    },
                                }
                            ]
                        },
                    }
                ]
            },
            {"rules": [{"host": "updated-example.com"}], "ingressClassName": "nginx"},
        ),
        ({"tls": [{"hosts": ["a.example.com"]}]}, {}),
    ],
)
def test_ingress_spec_converges_to_template(
    store: InMemoryStore,
    reconciler: AppIngressReconciler,
    make_app_ingress,
    payload,
    updated_payload,
) -> None:
    """The Ingress spec always equals the current template spec exactly."""
    store.create_app_ingress(make_app_ingress(spec=payload))
    reconciler.reconcile("default", "s1")
    assert store.get_ingress("ns1", "ing1").spec == payload

    app = store.get_app_ingress("default", "s1")
    app.spec.template.spec = updated_payload
    store.update_app_ingress(app)
    reconciler.reconcile("default", "s1")

    assert store.get_ingress("ns1", "ing1").spec == updated_payload


def test_overwrites_manual_changes_to_ingress(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """Edits made directly on the Ingress are overwritten on the next reconcile."""
    store.create_app_ingress(make_app_ingress(labels={"app": "web"}))
    reconciler.reconcile("default", "s1")

    ingress = store.get_ingress("ns1", "ing1")
    ingress.metadata.labels["extra"] = "value"
    ingress.metadata.annotations["note"] = "manual"
    ingress.spec["host"] = "drifted.com"
    store.update_ingress(ingress)

    reconciler.reconcile("default", "s1")

    ingress = store.get_ingress("ns1", "ing1")
    assert ingress.metadata.labels == {"app": "web"}
    assert ingress.metadata.annotations == {}
    assert ingress.spec == {"host": "example.com"}


def test_deletion_removes_ingress_and_finalizer(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """Deleting the AppIngress deletes the Ingress and completes deletion."""
    store.create_app_ingress(make_app_ingress())
    reconciler.reconcile("default", "s1")
    store.get_ingress("ns1", "ing1")

    store.delete_app_ingress("default", "s1")
    assert store.get_app_ingress("default", "s1").is_deleting

    assert reconciler.reconcile("default", "s1") == ReconcileResult(ACTION_FINALIZED)

    with pytest.raises(NotFoundError):
        store.get_ingress("ns1", "ing1")
    with pytest.raises(NotFoundError):
        store.get_app_ingress("default", "s1")


def test_deletion_when_ingress_already_gone(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """An Ingress removed out of band does not block deletion."""
    store.create_app_ingress(make_app_ingress())
    reconciler.reconcile("default", "s1")

    store.delete_ingress("ns1", "ing1")
    store.delete_app_ingress("default", "s1")

    assert reconciler.reconcile("default", "s1") == ReconcileResult(ACTION_FINALIZED)
    with pytest.raises(NotFoundError):
        store.get_app_ingress("default", "s1")


def test_deletion_without_cleanup_finalizer(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """An object being deleted without our finalizer is left alone."""
    app = make_app_ingress()
    app.metadata.finalizers = ["example.com/other"]
    store.create_app_ingress(app)
    store.delete_app_ingress("default", "s1")

    assert reconciler.reconcile("default", "s1") == ReconcileResult(ACTION_NONE)

    app = store.get_app_ingress("default", "s1")
    assert app.metadata.finalizers == ["example.com/other"]
    with pytest.raises(NotFoundError):
        store.get_ingress("ns1", "ing1")


def test_delete_failure_keeps_finalizer(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """A failed Ingress delete is raised and the finalizer stays in place."""
    store.create_app_ingress(make_app_ingress())
    reconciler.reconcile("default", "s1")
    store.delete_app_ingress("default", "s1")

    error = TransientStoreError("apiserver unavailable")
    with mock.patch.object(store, "delete_ingress", side_effect=error):
        with pytest.raises(TransientStoreError) as exc_info:
            reconciler.reconcile("default", "s1")
    assert exc_info.value is error

    app = store.get_app_ingress("default", "s1")
    assert app.metadata.finalizers == [CLEANUP_FINALIZER]
    store.get_ingress("ns1", "ing1")

    assert reconciler.reconcile("default", "s1") == ReconcileResult(ACTION_FINALIZED)
    with pytest.raises(NotFoundError):
        store.get_app_ingress("default", "s1")


def test_conflict_removing_finalizer_is_raised(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """A conflict persisting the finalizer removal is not swallowed."""
    store.create_app_ingress(make_app_ingress())
    reconciler.reconcile("default", "s1")
    store.delete_app_ingress("default", "s1")

    with mock.patch.object(
        store, "update_app_ingress", side_effect=ConflictError("stale")
    ):
        with pytest.raises(ConflictError):
            reconciler.reconcile("default", "s1")

    assert store.get_app_ingress("default", "s1").metadata.finalizers == [
        CLEANUP_FINALIZER
    ]

    # The retry finds the Ingress already gone and completes.
    assert reconciler.reconcile("default", "s1") == ReconcileResult(ACTION_FINALIZED)
    with pytest.raises(NotFoundError):
        store.get_app_ingress("default", "s1")


def test_concurrent_writer_causes_conflict(
    store: InMemoryStore,
    reconciler: AppIngressReconciler,
    make_app_ingress,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A concurrent edit makes the stale status write fail; a retry converges."""
    store.create_app_ingress(make_app_ingress())
    namespace_exists = store.namespace_exists

    def racing_namespace_exists(name):
        other = store.get_app_ingress("default", "s1")
        other.metadata.labels["touched"] = "yes"
        store.update_app_ingress(other)
        return namespace_exists(name)

    monkeypatch.setattr(store, "namespace_exists", racing_namespace_exists)
    with pytest.raises(ConflictError):
        reconciler.reconcile("default", "s1")
    monkeypatch.undo()

    assert reconciler.reconcile("default", "s1") == ReconcileResult(ACTION_CONVERGED)
    app = store.get_app_ingress("default", "s1")
    assert app.metadata.labels == {"touched": "yes"}
    assert summarize(app) == [
        ("NamespaceValid", "True", "Valid"),
        ("IngressCreated", "True", "Created"),
    ]


def test_create_failure_sets_error_condition(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """A failed create is recorded in IngressCreated and raised unchanged."""
    store.create_app_ingress(make_app_ingress())

    error = StoreError("admission webhook denied the request", status=400)
    with mock.patch.object(store, "create_ingress", side_effect=error):
        with pytest.raises(StoreError) as exc_info:
            reconciler.reconcile("default", "s1")
    assert exc_info.value is error

    app = store.get_app_ingress("default", "s1")
    assert summarize(app) == [
        ("NamespaceValid", "True", "Valid"),
        ("IngressCreated", "False", "Error"),
    ]
    failed = conditions.find_condition(app.status.conditions, "IngressCreated")
    assert failed.message == (
        "Failed to create/update Ingress: admission webhook denied the request"
    )

    reconciler.reconcile("default", "s1")

    app = store.get_app_ingress("default", "s1")
    created = conditions.find_condition(app.status.conditions, "IngressCreated")
    assert created.status == "True"
    assert created.reason == "Created"
    assert created.lastTransitionTime > failed.lastTransitionTime


def test_namespace_created_later(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """Once the namespace exists the next reconcile flips NamespaceValid."""
    store.create_app_ingress(make_app_ingress(target_namespace="late-ns"))
    reconciler.reconcile("default", "s1")
    missing = store.get_app_ingress("default", "s1").status.conditions[0]

    store.add_namespace("late-ns")
    assert reconciler.reconcile("default", "s1") == ReconcileResult(ACTION_CONVERGED)

    app = store.get_app_ingress("default", "s1")
    valid = conditions.find_condition(app.status.conditions, "NamespaceValid")
    assert valid.status == "True"
    assert valid.lastTransitionTime > missing.lastTransitionTime
    assert store.get_ingress("late-ns", "ing1").spec == {"host": "example.com"}


def test_ingress_created_concurrently(
    store: InMemoryStore, reconciler: AppIngressReconciler, make_app_ingress
) -> None:
    """If the Ingress appears between get and create, it is updated instead."""
    store.create_app_ingress(make_app_ingress())
    get_ingress = store.get_ingress
    calls = []

    def racing_get_ingress(namespace, name):
        calls.append(name)
        if len(calls) == 1:
            store.create_ingress(
                Ingress(
                    metadata=CRDMetadata(name=name, namespace=namespace),
                    spec={"host": "someone-else.com"},
                )
            )
            raise NotFoundError(f"Ingress {namespace}/{name} not found")
        return get_ingress(namespace, name)

    with mock.patch.object(store, "get_ingress", side_effect=racing_get_ingress):
        reconciler.reconcile("default", "s1")

    assert len(calls) == 2
    assert store.get_ingress("ns1", "ing1").spec == {"host": "example.com"}
