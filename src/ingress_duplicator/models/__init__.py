"""Pydantic models for the AppIngress CRD and the Ingress it produces."""

from .appingress import (
    AppIngress,
    AppIngressSpec,
    AppIngressStatus,
    Ingress,
    IngressTemplate,
    TemplateMetadata,
)

__all__ = [
    "AppIngress",
    "AppIngressSpec",
    "AppIngressStatus",
    "Ingress",
    "IngressTemplate",
    "TemplateMetadata",
]
