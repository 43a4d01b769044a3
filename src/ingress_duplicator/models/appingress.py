"""AppIngress and Ingress resource models."""

import copy
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional

from ingress_duplicator.crd.base import CRDMetadata, CRDSpec, CRDStatus

GROUP = "ingress.example.com"
VERSION = "v1alpha1"
KIND = "AppIngress"
PLURAL = "appingresses"

INGRESS_API_VERSION = "networking.k8s.io/v1"
INGRESS_KIND = "Ingress"


class TemplateMetadata(CRDSpec):
    """Identity metadata copied onto the generated Ingress."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, description="Name of the Ingress to create")
    labels: Dict[str, str] = Field(
        default_factory=dict, description="Labels set on the Ingress"
    )
    annotations: Dict[str, str] = Field(
        default_factory=dict, description="Annotations set on the Ingress"
    )


class IngressTemplate(CRDSpec):
    """Template for the Ingress resource."""

    metadata: TemplateMetadata = Field(..., description="Ingress metadata")
    spec: Dict[str, Any] = Field(
        default_factory=dict,
        description="Ingress spec, copied verbatim to the generated Ingress",
    )


class AppIngressSpec(CRDSpec):
    """AppIngress CRD specification."""

    template: IngressTemplate = Field(..., description="Ingress to be created")
    targetNamespace: str = Field(
        ...,
        min_length=1,
        description="Namespace where the Ingress will be created",
    )


class AppIngressStatus(CRDStatus):
    """Observed state of an AppIngress."""


class AppIngress(BaseModel):
    """An AppIngress object as stored in the cluster."""

    metadata: CRDMetadata
    spec: AppIngressSpec
    status: AppIngressStatus = Field(default_factory=AppIngressStatus)

    @property
    def is_deleting(self):
        return self.metadata.deletionTimestamp is not None

    @property
    def ingress_name(self):
        return self.spec.template.metadata.name

    @property
    def target_namespace(self):
        return self.spec.targetNamespace

    @classmethod
    def from_manifest(cls, manifest):
        """Build an AppIngress from an API server dict."""
        return cls.model_validate(
            {
                "metadata": manifest.get("metadata") or {},
                "spec": manifest.get("spec") or {},
                "status": manifest.get("status") or {},
            }
        )

    def to_manifest(self):
        """Serialise to a dict suitable for the custom objects API."""
        return {
            "apiVersion": f"{GROUP}/{VERSION}",
            "kind": KIND,
            "metadata": self.metadata.model_dump(mode="json", exclude_none=True),
            "spec": self.spec.model_dump(mode="json"),
            "status": self.status.model_dump(mode="json", exclude_none=True),
        }


class Ingress(BaseModel):
    """The Ingress generated from an AppIngress template."""

    metadata: CRDMetadata
    spec: Dict[str, Any] = Field(default_factory=dict)
    status: Optional[Dict[str, Any]] = None

    @classmethod
    def from_template(cls, app_ingress):
        """Desired Ingress for an AppIngress. No owner reference is set."""
        template = app_ingress.spec.template
        return cls(
            metadata=CRDMetadata(
                name=template.metadata.name,
                namespace=app_ingress.spec.targetNamespace,
                labels=dict(template.metadata.labels),
                annotations=dict(template.metadata.annotations),
            ),
            spec=copy.deepcopy(template.spec),
        )

    def apply_template(self, app_ingress):
        """Overwrite labels, annotations and spec with the template's.

        Returns True if anything was different.
        """
        template = app_ingress.spec.template
        changed = (
            self.metadata.labels != template.metadata.labels
            or self.metadata.annotations != template.metadata.annotations
            or self.spec != template.spec
        )
        self.metadata.labels = dict(template.metadata.labels)
        self.metadata.annotations = dict(template.metadata.annotations)
        self.spec = copy.deepcopy(template.spec)
        return changed

    @classmethod
    def from_manifest(cls, manifest):
        return cls.model_validate(
            {
                "metadata": manifest.get("metadata") or {},
                "spec": manifest.get("spec") or {},
                "status": manifest.get("status"),
            }
        )

    def to_manifest(self):
        manifest = {
            "apiVersion": INGRESS_API_VERSION,
            "kind": INGRESS_KIND,
            "metadata": self.metadata.model_dump(mode="json", exclude_none=True),
            "spec": copy.deepcopy(self.spec),
        }
        if self.status is not None:
            manifest["status"] = copy.deepcopy(self.status)
        return manifest
