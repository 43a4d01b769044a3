"""Handler modules for the ingress-duplicator operator."""

# Importing the handlers registers them with kopf
from . import appingress_handler

__all__ = ["appingress_handler"]
