"""Reconciler that projects an AppIngress into an Ingress in another namespace.

Each call to ``reconcile`` starts from freshly fetched objects and keeps no
state between calls, so it can be repeated any number of times:

    fetch -> (deleting? finalize) | (no finalizer? add it)
          -> validate target namespace -> create/update Ingress -> report status

Ownership across namespaces cannot be expressed with owner references, so the
Ingress is tied to its AppIngress only by name and namespace. The cleanup
finalizer keeps the AppIngress around until the Ingress has been deleted.

Store errors other than the benign "not found" cases are raised unchanged;
the caller (kopf) retries the whole reconcile.
"""

import logging
from typing import NamedTuple, Optional

from ingress_duplicator import conditions
from ingress_duplicator.exceptions import AlreadyExistsError, NotFoundError
from ingress_duplicator.finalizers import (
    CLEANUP_FINALIZER,
    add_finalizer,
    has_finalizer,
    remove_finalizer,
)
from ingress_duplicator.models import Ingress

logger = logging.getLogger(__name__)

ACTION_NONE = "none"
ACTION_FINALIZED = "finalized"
ACTION_NAMESPACE_MISSING = "namespace-missing"
ACTION_CONVERGED = "converged"


class ReconcileResult(NamedTuple):
    """Outcome of a successful reconcile."""

    action: str = ACTION_NONE
    requeue_after: Optional[float] = None


class AppIngressReconciler:
    """Reconciles AppIngress objects against a StoreClient.

    Args:
        store: StoreClient used for every read and write
        namespace_recheck_delay: Seconds after which a reconcile that found the
            target namespace missing asks to be run again. None disables it.
        clock: Callable returning the current time for condition transitions
    """

    def __init__(self, store, namespace_recheck_delay=None, clock=conditions.utcnow):
        self.store = store
        self.namespace_recheck_delay = namespace_recheck_delay
        self.clock = clock

    def reconcile(self, namespace, name):
        logger.info(f"Reconciling AppIngress {namespace}/{name}")

        try:
            app_ingress = self.store.get_app_ingress(namespace, name)
        except NotFoundError:
            logger.debug(f"AppIngress {namespace}/{name} not found, nothing to do")
            return ReconcileResult()

        if app_ingress.is_deleting:
            return self._finalize(app_ingress)

        if add_finalizer(app_ingress, CLEANUP_FINALIZER):
            logger.info(f"Adding finalizer {CLEANUP_FINALIZER} to {namespace}/{name}")
            app_ingress = self.store.update_app_ingress(app_ingress)

        target_ns = app_ingress.target_namespace
        generation = app_ingress.metadata.generation

        if not self.store.namespace_exists(target_ns):
            logger.warning(
                f"Target namespace {target_ns} for AppIngress {namespace}/{name} not found"
            )
            if self._set_condition(
                app_ingress,
                conditions.NAMESPACE_VALID,
                conditions.FALSE,
                "NotFound",
                "Target namespace does not exist",
                generation,
            ):
                self.store.update_app_ingress_status(app_ingress)
            return ReconcileResult(
                ACTION_NAMESPACE_MISSING, requeue_after=self.namespace_recheck_delay
            )

        status_changed = self._set_condition(
            app_ingress,
            conditions.NAMESPACE_VALID,
            conditions.TRUE,
            "Valid",
            "Target namespace exists",
            generation,
        )

        try:
            outcome = self._create_or_update_ingress(app_ingress)
        except Exception as e:
            logger.error(
                f"Failed to create/update Ingress {target_ns}/{app_ingress.ingress_name}: {e}"
            )
            self._set_condition(
                app_ingress,
                conditions.INGRESS_CREATED,
                conditions.FALSE,
                "Error",
                f"Failed to create/update Ingress: {e}",
                generation,
            )
            self.store.update_app_ingress_status(app_ingress)
            raise

        status_changed |= self._set_condition(
            app_ingress,
            conditions.INGRESS_CREATED,
            conditions.TRUE,
            "Created",
            "Ingress created/updated successfully",
            generation,
        )
        if status_changed:
            self.store.update_app_ingress_status(app_ingress)

        logger.info(f"Reconciliation of {namespace}/{name} completed successfully ({outcome})")
        return ReconcileResult(ACTION_CONVERGED)

    def _finalize(self, app_ingress):
        namespace = app_ingress.metadata.namespace
        name = app_ingress.metadata.name

        if not has_finalizer(app_ingress, CLEANUP_FINALIZER):
            return ReconcileResult()

        target_ns = app_ingress.target_namespace
        ingress_name = app_ingress.ingress_name
        logger.info(f"Cleaning up Ingress {target_ns}/{ingress_name} for {namespace}/{name}")

        try:
            self.store.delete_ingress(target_ns, ingress_name)
        except NotFoundError:
            logger.info(f"Ingress {target_ns}/{ingress_name} already deleted or not found")

        remove_finalizer(app_ingress, CLEANUP_FINALIZER)
        self.store.update_app_ingress(app_ingress)

        logger.info(f"Cleanup of {namespace}/{name} completed successfully")
        return ReconcileResult(ACTION_FINALIZED)

    def _create_or_update_ingress(self, app_ingress):
        """Make the Ingress match the template exactly.

        Returns "created", "updated" or "unchanged".
        """
        target_ns = app_ingress.target_namespace
        ingress_name = app_ingress.ingress_name

        try:
            ingress = self.store.get_ingress(target_ns, ingress_name)
        except NotFoundError:
            try:
                self.store.create_ingress(Ingress.from_template(app_ingress))
                return "created"
            except AlreadyExistsError:
                # Created concurrently; fall through to an update of the new object.
                ingress = self.store.get_ingress(target_ns, ingress_name)

        if not ingress.apply_template(app_ingress):
            return "unchanged"
        self.store.update_ingress(ingress)
        return "updated"

    def _set_condition(self, app_ingress, condition_type, status, reason, message, generation):
        return conditions.set_condition(
            app_ingress.status.conditions,
            condition_type,
            status,
            reason,
            message,
            now=self.clock(),
            observed_generation=generation,
        )
