"""Exceptions raised by the ingress-duplicator operator."""


class IngressDuplicatorError(Exception):
    """Base class for all operator errors."""


class ConfigError(IngressDuplicatorError):
    """Raised when the operator configuration is invalid."""


class StoreError(IngressDuplicatorError):
    """A request against the resource store failed.

    Args:
        message: Human readable description
        status: HTTP-like status code reported by the store, if any
        reason: Short machine readable reason, if any
    """

    def __init__(self, message, status=None, reason=None):
        super().__init__(message)
        self.status = status
        self.reason = reason


class NotFoundError(StoreError):
    """The requested object does not exist."""

    def __init__(self, message, status=404, reason="NotFound"):
        super().__init__(message, status=status, reason=reason)


class AlreadyExistsError(StoreError):
    """An object with the same identity already exists."""

    def __init__(self, message, status=409, reason="AlreadyExists"):
        super().__init__(message, status=status, reason=reason)


class ConflictError(StoreError):
    """The object was modified since it was read (stale resourceVersion).

    Callers must refetch and redo the whole reconcile.
    """

    def __init__(self, message, status=409, reason="Conflict"):
        super().__init__(message, status=status, reason=reason)


class TransientStoreError(StoreError):
    """The store was unavailable or the request timed out. Retry with backoff."""
