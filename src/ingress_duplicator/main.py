import kopf
import logging
import kubernetes
from kubernetes.client.exceptions import ApiException

from ingress_duplicator.config import get_config
from ingress_duplicator.crd.generator import CRDManager
from ingress_duplicator.handlers import appingress_handler
from ingress_duplicator.reconciler import AppIngressReconciler
from ingress_duplicator.store import KubernetesStoreClient

logger = logging.getLogger(__name__)


def configure_logging(level=None):
    logging.basicConfig(
        level=getattr(logging, (level or get_config().log_level).upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_kube_config():
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        kubernetes.config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except kubernetes.config.ConfigException:
        kubernetes.config.load_kube_config()
        logger.info("Loaded local Kubernetes config")


def build_reconciler(config=None):
    """Create a reconciler talking to the current cluster."""
    config = config or get_config()
    store = KubernetesStoreClient(request_timeout=config.request_timeout)
    return AppIngressReconciler(
        store, namespace_recheck_delay=config.namespace_recheck_delay
    )


@kopf.on.startup()
def startup_fn(settings: kopf.OperatorSettings, **kwargs):
    """Configure the operator."""
    config = get_config()
    logger.info("Ingress duplicator operator is starting up...")

    load_kube_config()

    if config.manage_crds:
        crd_manager = CRDManager()
        if config.generate_crd_files:
            logger.info("Generating CRD files")
            crd_manager.generate_all_crds(force=True)
        try:
            crd_manager.apply_crds_to_cluster()
        except ApiException as e:
            logger.error(f"Failed to apply CRDs to cluster: {e}")
            raise

    appingress_handler.set_reconciler(build_reconciler(config))

    settings.batching.worker_limit = config.worker_limit
    settings.posting.enabled = config.posting_enabled
    settings.watching.server_timeout = config.server_timeout

    logger.info(f"Worker limit: {settings.batching.worker_limit}")
    logger.info(f"Posting enabled: {settings.posting.enabled}")
    logger.info(f"Resync interval: {config.resync_interval}s")
    logger.info("Ingress duplicator operator startup complete")


@kopf.on.cleanup()
def cleanup_fn(**kwargs):
    """Cleanup operator resources."""
    logger.info("Ingress duplicator operator is shutting down...")
    appingress_handler.set_reconciler(None)
    logger.info("Ingress duplicator operator shutdown complete")


def main():
    configure_logging()
    try:
        kopf.run(clusterwide=True)
    except KeyboardInterrupt:
        logger.info("Operator stopped by user")
    except Exception as e:
        logger.error(f"Operator failed: {e}")
        raise


if __name__ == "__main__":
    main()
