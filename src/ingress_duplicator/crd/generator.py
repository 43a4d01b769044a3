"""CRD manifest generation from the pydantic models."""

import hashlib
import json
import logging
from pathlib import Path

import kubernetes
import yaml
from kubernetes.client.exceptions import ApiException

from .registry import CRD_KINDS

logger = logging.getLogger(__name__)

CONDITION_SCHEMA = {
    "type": "object",
    "properties": {
        "type": {"type": "string"},
        "status": {"type": "string", "enum": ["True", "False", "Unknown"]},
        "reason": {"type": "string"},
        "message": {"type": "string"},
        "lastTransitionTime": {"type": "string", "format": "date-time"},
        "observedGeneration": {"type": "integer", "format": "int64"},
    },
    "required": ["type", "status", "reason", "lastTransitionTime"],
}

STATUS_SCHEMA = {
    "type": "object",
    "properties": {
        "conditions": {
            "type": "array",
            "items": CONDITION_SCHEMA,
            "x-kubernetes-list-type": "map",
            "x-kubernetes-list-map-keys": ["type"],
        },
    },
}

_PASSTHROUGH_KEYS = ("description", "default", "enum", "minLength", "maxLength", "format")


class OpenAPIConverter:
    """Convert pydantic schemas to structural OpenAPI v3 schemas for CRDs."""

    @staticmethod
    def convert_schema(pydantic_schema):
        """Convert a pydantic JSON schema to an OpenAPI v3 object schema."""
        return OpenAPIConverter._convert_property(
            pydantic_schema, pydantic_schema.get("$defs", {})
        )

    @staticmethod
    def _convert_property(prop_schema, defs):
        """Convert a single property schema."""
        # Older pydantic releases wrap a described $ref in a single-item allOf.
        if len(prop_schema.get("allOf", ())) == 1:
            merged = {k: v for k, v in prop_schema.items() if k != "allOf"}
            merged.update(prop_schema["allOf"][0])
            return OpenAPIConverter._convert_property(merged, defs)

        if "$ref" in prop_schema:
            def_name = prop_schema["$ref"].replace("#/$defs/", "")
            resolved = dict(defs.get(def_name, {}))
            if "description" in prop_schema:
                resolved["description"] = prop_schema["description"]
            return OpenAPIConverter._convert_property(resolved, defs)

        result = {
            key: prop_schema[key] for key in _PASSTHROUGH_KEYS if key in prop_schema
        }
        prop_type = prop_schema.get("type")

        if prop_type == "array":
            result["type"] = "array"
            if "items" in prop_schema:
                result["items"] = OpenAPIConverter._convert_property(
                    prop_schema["items"], defs
                )
            return result

        if prop_type == "object" or "properties" in prop_schema:
            result["type"] = "object"
            if "properties" in prop_schema:
                result["properties"] = {
                    name: OpenAPIConverter._convert_property(schema, defs)
                    for name, schema in prop_schema["properties"].items()
                }
                if prop_schema.get("required"):
                    result["required"] = list(prop_schema["required"])
                return result

            additional = prop_schema.get("additionalProperties", True)
            if isinstance(additional, dict) and additional:
                result["additionalProperties"] = OpenAPIConverter._convert_property(
                    additional, defs
                )
            else:
                # Opaque payload, stored as given.
                result["x-kubernetes-preserve-unknown-fields"] = True
            return result

        if prop_type:
            result["type"] = prop_type
        else:
            result["x-kubernetes-preserve-unknown-fields"] = True
        return result


class CRDManager:
    """Generates CRD manifests and applies them to a cluster."""

    def __init__(self, output_dir=None, kinds=None):
        self.output_dir = Path(output_dir) if output_dir else Path("crds/generated")
        self.kinds = kinds if kinds is not None else CRD_KINDS
        self.converter = OpenAPIConverter()

    def generate_all_crds(self, force=False):
        """Generate CRD YAML files only if models changed.

        Returns:
            bool: True if CRDs were generated/updated, False if no changes needed
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        current_hash = self._calculate_models_hash()
        hash_file = self.output_dir / ".models_hash"

        if not force and hash_file.exists():
            if hash_file.read_text().strip() == current_hash:
                logger.info("CRD models unchanged, skipping generation")
                return False

        if not self.kinds:
            logger.warning("No CRD kinds to generate")
            return False

        logger.info("Generating CRDs from pydantic models...")
        generated_files = []
        for crd_name, crd_def in self.get_crds_as_dict().items():
            filename = f"{crd_name}.yaml"
            with open(self.output_dir / filename, "w") as f:
                yaml.safe_dump(crd_def, f, default_flow_style=False, sort_keys=False)
            generated_files.append(filename)
            logger.info(f"Generated CRD: {filename}")

        self._generate_kustomization(generated_files)
        hash_file.write_text(current_hash)

        logger.info(f"Generated {len(generated_files)} CRD files")
        return True

    def generate_crd_definition(self, crd_kind):
        """Build the CustomResourceDefinition manifest for one kind."""
        try:
            schema = crd_kind.spec_model.model_json_schema()
        except Exception as e:
            raise ValueError(
                f"Failed to generate schema for {crd_kind.spec_model.__name__}: {e}"
            ) from e

        version = {
            "name": crd_kind.version,
            "served": True,
            "storage": True,
            "schema": {
                "openAPIV3Schema": {
                    "type": "object",
                    "description": f"{crd_kind.kind} is the Schema for the {crd_kind.plural} API.",
                    "properties": {
                        "spec": self.converter.convert_schema(schema),
                        "status": STATUS_SCHEMA,
                    },
                    "required": ["spec"],
                }
            },
            "subresources": {"status": {}},
        }
        if crd_kind.printer_columns:
            version["additionalPrinterColumns"] = list(crd_kind.printer_columns)

        names = {
            "plural": crd_kind.plural,
            "singular": crd_kind.singular,
            "kind": crd_kind.kind,
            "listKind": f"{crd_kind.kind}List",
        }
        if crd_kind.short_names:
            names["shortNames"] = list(crd_kind.short_names)

        return {
            "apiVersion": "apiextensions.k8s.io/v1",
            "kind": "CustomResourceDefinition",
            "metadata": {"name": crd_kind.crd_name},
            "spec": {
                "group": crd_kind.group,
                "names": names,
                "scope": crd_kind.scope,
                "versions": [version],
            },
        }

    def get_crds_as_dict(self):
        """Generate all CRDs as in-memory dictionaries keyed by CRD name."""
        crds = {}
        for crd_kind in self.kinds.values():
            crd_def = self.generate_crd_definition(crd_kind)
            crds[crd_def["metadata"]["name"]] = crd_def
        return crds

    def _generate_kustomization(self, filenames):
        kustomization = {
            "apiVersion": "kustomize.config.k8s.io/v1beta1",
            "kind": "Kustomization",
            "resources": sorted(filenames),
        }
        with open(self.output_dir / "kustomization.yaml", "w") as f:
            yaml.safe_dump(kustomization, f, default_flow_style=False)
        logger.info("Generated kustomization.yaml")

    def _calculate_models_hash(self):
        """Hash of all model schemas, for change detection."""
        model_data = {}
        for key, crd_kind in sorted(self.kinds.items()):
            model_data[key] = {
                "schema": crd_kind.spec_model.model_json_schema(),
                "scope": crd_kind.scope,
                "printer_columns": crd_kind.printer_columns,
            }
        model_json = json.dumps(model_data, sort_keys=True)
        return hashlib.sha256(model_json.encode()).hexdigest()

    def apply_crds_to_cluster(self, api=None):
        """Create or replace the CRDs in the cluster.

        Args:
            api: ApiextensionsV1Api to use (defaults to the loaded kube config)

        Returns:
            int: number of CRDs applied
        """
        api = api or kubernetes.client.ApiextensionsV1Api()

        applied_count = 0
        for crd_name, crd_def in self.get_crds_as_dict().items():
            try:
                existing = api.read_custom_resource_definition(crd_name)
                crd_def["metadata"]["resourceVersion"] = existing.metadata.resource_version
                api.replace_custom_resource_definition(name=crd_name, body=crd_def)
                logger.info(f"Updated CRD: {crd_name}")
            except ApiException as e:
                if e.status != 404:
                    logger.error(f"Failed to apply CRD {crd_name}: {e}")
                    raise
                api.create_custom_resource_definition(body=crd_def)
                logger.info(f"Created CRD: {crd_name}")
            applied_count += 1

        logger.info(f"Applied {applied_count} CRDs to cluster")
        return applied_count

    def validate_generated_crds(self):
        """Validate that the generated CRD files are well formed."""
        if not self.output_dir.exists():
            logger.error("CRD output directory does not exist")
            return False

        crd_files = [
            f for f in self.output_dir.glob("*.yaml") if f.name != "kustomization.yaml"
        ]
        if not crd_files:
            logger.error("No CRD files found to validate")
            return False

        valid_count = 0
        for crd_file in crd_files:
            with open(crd_file, "r") as f:
                try:
                    crd_def = yaml.safe_load(f)
                except yaml.YAMLError as e:
                    logger.error(f"Invalid YAML in {crd_file}: {e}")
                    continue

            if not isinstance(crd_def, dict):
                logger.error(f"Invalid YAML in {crd_file}")
                continue
            if not all(k in crd_def for k in ("apiVersion", "kind", "metadata", "spec")):
                logger.error(f"Missing required fields in {crd_file}")
                continue
            if crd_def["kind"] != "CustomResourceDefinition":
                logger.error(f"Not a CRD: {crd_file}")
                continue

            valid_count += 1
            logger.debug(f"Valid CRD: {crd_file}")

        logger.info(f"Validated {valid_count}/{len(crd_files)} CRD files")
        return valid_count == len(crd_files)
