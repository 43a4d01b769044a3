"""Finalizer helpers. They only touch the in-memory object; persist via the store."""

CLEANUP_FINALIZER = "ingress.example.com/cleanup"


def has_finalizer(obj, name=CLEANUP_FINALIZER):
    return name in obj.metadata.finalizers


def add_finalizer(obj, name=CLEANUP_FINALIZER):
    """Add a finalizer if missing. Returns True if the object changed."""
    if has_finalizer(obj, name):
        return False
    obj.metadata.finalizers.append(name)
    return True


def remove_finalizer(obj, name=CLEANUP_FINALIZER):
    """Remove every occurrence of a finalizer. Returns True if the object changed."""
    if not has_finalizer(obj, name):
        return False
    obj.metadata.finalizers = [f for f in obj.metadata.finalizers if f != name]
    return True
