"""Static table of the custom resource kinds served by the operator."""

import logging
from typing import Any, Dict, List, NamedTuple, Type

from ingress_duplicator.models import appingress

logger = logging.getLogger(__name__)


class CRDKind(NamedTuple):
    """Everything needed to describe one custom resource kind."""

    group: str
    version: str
    kind: str
    plural: str
    spec_model: Type
    scope: str = "Namespaced"
    short_names: List[str] = []
    printer_columns: List[Dict[str, Any]] = []

    @property
    def key(self):
        return f"{self.group}/{self.version}/{self.kind}"

    @property
    def singular(self):
        return self.kind.lower()

    @property
    def crd_name(self):
        return f"{self.plural}.{self.group}"


APP_INGRESS = CRDKind(
    group=appingress.GROUP,
    version=appingress.VERSION,
    kind=appingress.KIND,
    plural=appingress.PLURAL,
    spec_model=appingress.AppIngressSpec,
    short_names=["aing"],
    printer_columns=[
        {
            "name": "Target Namespace",
            "type": "string",
            "jsonPath": ".spec.targetNamespace",
        },
        {
            "name": "Age",
            "type": "date",
            "jsonPath": ".metadata.creationTimestamp",
        },
    ],
)

CRD_KINDS = {crd_kind.key: crd_kind for crd_kind in (APP_INGRESS,)}


def get_kind(group, version, kind):
    """Get a kind by its group, version and name. Returns None if unknown."""
    return CRD_KINDS.get(f"{group}/{version}/{kind}")


def list_kinds():
    """List all served kind keys."""
    return list(CRD_KINDS.keys())


def validate_model_schema(model_class):
    """Validate that a model can be converted to OpenAPI schema."""
    try:
        schema = model_class.model_json_schema()
        return "properties" in schema and isinstance(schema["properties"], dict)
    except Exception as e:
        logger.error(f"Schema validation failed for {model_class.__name__}: {e}")
        return False
