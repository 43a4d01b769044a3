"""Kopf handlers that trigger AppIngress reconciliation.

kopf decides when to reconcile (create/update/resume events, deletion, a
periodic resync timer and retries) and runs at most one handler per object at
a time. Every handler funnels into the same level-triggered reconcile.
"""

import logging

import kopf

from ingress_duplicator.config import get_config
from ingress_duplicator.exceptions import ConflictError, TransientStoreError
from ingress_duplicator.models.appingress import GROUP, PLURAL, VERSION
from ingress_duplicator.reconciler import (
    ACTION_CONVERGED,
    ACTION_NAMESPACE_MISSING,
)

logger = logging.getLogger(__name__)

_reconciler = None


def set_reconciler(reconciler):
    """Install the reconciler used by the handlers (called on startup)."""
    global _reconciler
    _reconciler = reconciler


def get_reconciler():
    if _reconciler is None:
        raise kopf.PermanentError("AppIngress reconciler not initialised")
    return _reconciler


def run_reconcile(name, namespace, body, requeue=True):
    """Reconcile one AppIngress and translate the outcome for kopf.

    Conflicts and transient store failures become kopf.TemporaryError so the
    whole reconcile is retried from a fresh read. A missing target namespace
    is requeued after the configured re-check delay when ``requeue`` is set.
    """
    config = get_config()
    try:
        result = get_reconciler().reconcile(namespace, name)
    except ConflictError as e:
        logger.info(f"Conflict reconciling {namespace}/{name}, retrying: {e}")
        raise kopf.TemporaryError(f"Conflict: {e}", delay=config.retry_delay) from e
    except TransientStoreError as e:
        logger.warning(f"Transient error reconciling {namespace}/{name}: {e}")
        raise kopf.TemporaryError(
            f"Store unavailable: {e}", delay=config.retry_delay
        ) from e

    if result.action == ACTION_NAMESPACE_MISSING:
        target_ns = body.get("spec", {}).get("targetNamespace")
        kopf.warn(
            body,
            reason="NamespaceNotFound",
            message=f"Target namespace {target_ns} does not exist",
        )
        if requeue and result.requeue_after:
            raise kopf.TemporaryError(
                f"Target namespace {target_ns} does not exist",
                delay=result.requeue_after,
            )
    elif result.action == ACTION_CONVERGED:
        kopf.info(body, reason="IngressSynced", message="Ingress created/updated")

    return result


@kopf.on.create(GROUP, VERSION, PLURAL)
@kopf.on.update(GROUP, VERSION, PLURAL)
@kopf.on.resume(GROUP, VERSION, PLURAL)
def appingress_reconcile(name, namespace, body, **kwargs):
    """Handle AppIngress create, update and resume (on operator restart)."""
    run_reconcile(name, namespace, body)


@kopf.timer(GROUP, VERSION, PLURAL, interval=get_config().resync_interval)
def appingress_resync(name, namespace, body, **kwargs):
    """Periodic resync; picks up namespaces created after the AppIngress."""
    run_reconcile(name, namespace, body, requeue=False)


# optional: kopf adds no finalizer of its own, the reconciler's finalizer
# keeps the object until the Ingress is gone.
@kopf.on.delete(GROUP, VERSION, PLURAL, optional=True)
def appingress_delete(name, namespace, body, **kwargs):
    """Handle AppIngress deletion."""
    run_reconcile(name, namespace, body)
