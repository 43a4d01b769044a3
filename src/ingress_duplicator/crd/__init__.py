"""CRD base models and manifest generation for the operator."""

from .base import CRDCondition, CRDMetadata, CRDSpec, CRDStatus

__all__ = ["CRDCondition", "CRDMetadata", "CRDSpec", "CRDStatus"]
